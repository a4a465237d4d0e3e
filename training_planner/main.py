from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from training_planner.api.plans import router as plans_router
from training_planner.config.settings import settings
from training_planner.core.errors import PlanEngineError
from training_planner.core.logger import setup_logger
from training_planner.db.session import init_db

setup_logger(level=settings.log_level)

ERROR_STATUS_CODES = {
    "plan_not_found": status.HTTP_404_NOT_FOUND,
    "preview_unknown": status.HTTP_404_NOT_FOUND,
    "version_conflict": status.HTTP_409_CONFLICT,
    "preview_already_held": status.HTTP_409_CONFLICT,
    "preview_plan_mismatch": status.HTTP_409_CONFLICT,
    "preview_expired": status.HTTP_410_GONE,
    "modification_not_applicable": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "ambiguous_phrase": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "clarification_not_pending": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "clarification_option_unknown": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "empty_message": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "upstream_planner_failure": status.HTTP_502_BAD_GATEWAY,
    "commit_not_persisted": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Ensure the schema exists before serving requests."""
    init_db()
    yield


app = FastAPI(title="Training Planner", lifespan=lifespan)
app.include_router(plans_router)


@app.exception_handler(PlanEngineError)
async def plan_engine_error_handler(_request: Request, exc: PlanEngineError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.code, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("Request failed", code=exc.code, error=exc.message)
    else:
        logger.info("Request rejected", code=exc.code, error=exc.message)
    return JSONResponse(status_code=status_code, content={"code": exc.code, "message": exc.message})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
