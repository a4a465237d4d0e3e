"""Modification planner boundary.

``ModificationPlanner`` is the protocol the engine depends on.
``HttpModificationPlanner`` talks to a remote planner over HTTP; every
transport error, non-2xx status, or payload that does not validate becomes
UpstreamPlannerError so conversation state is left untouched.
"""

from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import ValidationError

from training_planner.coach.schemas import PlannerRequest, PlannerResponse, planner_response_adapter
from training_planner.config.settings import settings
from training_planner.core.errors import UpstreamPlannerError


class ModificationPlanner(Protocol):
    def plan(self, request: PlannerRequest) -> PlannerResponse: ...


def parse_planner_response(payload: Any) -> PlannerResponse:
    """Validate a raw planner payload.

    Raises:
        UpstreamPlannerError: If the payload does not match any response mode
    """
    try:
        return planner_response_adapter.validate_python(payload)
    except ValidationError as e:
        logger.error("Planner returned a malformed response", error_count=e.error_count())
        raise UpstreamPlannerError(f"malformed planner response: {e.error_count()} validation error(s)") from e


class HttpModificationPlanner:
    """Planner client backed by an HTTP endpoint.

    Args:
        url: Planner endpoint (defaults to settings.planner_url)
        timeout: Request timeout in seconds
        client: Optional preconfigured httpx.Client (tests pass a MockTransport)
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url or settings.planner_url
        self._client = client or httpx.Client(timeout=timeout or settings.planner_timeout_seconds)

    def plan(self, request: PlannerRequest) -> PlannerResponse:
        logger.debug("Calling modification planner", url=self.url, mode=request.mode)
        try:
            response = self._client.post(self.url, json=request.model_dump(mode="json"))
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Planner returned an error status", status_code=e.response.status_code, mode=request.mode)
            raise UpstreamPlannerError(f"planner status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Planner unavailable", error=str(e), mode=request.mode)
            raise UpstreamPlannerError(f"planner unavailable: {e}") from e
        except ValueError as e:
            logger.error("Planner returned a non-JSON body", mode=request.mode)
            raise UpstreamPlannerError("planner returned a non-JSON body") from e

        parsed = parse_planner_response(payload)
        logger.info("Planner responded", request_mode=request.mode, response_mode=parsed.mode)
        return parsed

    def close(self) -> None:
        self._client.close()
