"""Apply a batch of modifications to a canonical day list.

Pure: the input mapping is never mutated. Modifications are applied in order
to a working copy; the first one that cannot be applied aborts the whole
batch with ModificationApplyError and the caller keeps its original days.
"""

from collections.abc import Mapping, Sequence
from datetime import date

from loguru import logger

from training_planner.core.errors import ModificationApplyError
from training_planner.plans.modify.types import Modification
from training_planner.plans.revision.builder import PlanRevisionBuilder
from training_planner.plans.types import REST_WORKOUT, DayRecord, is_rest_workout


def _snapshot_matches(modification: Modification, record: DayRecord) -> bool:
    before = modification.before
    if before.workout.strip() != record.workout.strip():
        return False
    return before.title is None or before.title == record.title


def _apply_one(
    working: dict[date, DayRecord],
    index: int,
    modification: Modification,
    start_date: date,
    end_date: date,
    revision: PlanRevisionBuilder | None,
) -> None:
    origin = modification.date
    record = working.get(origin)
    if record is None:
        raise ModificationApplyError(index, f"{origin.isoformat()} is not a day of this plan")
    if not _snapshot_matches(modification, record):
        raise ModificationApplyError(
            index,
            f"{origin.isoformat()} no longer shows '{modification.before.workout}'",
        )

    operation = modification.operation
    if operation == "cancel":
        if record.is_rest:
            raise ModificationApplyError(index, f"{origin.isoformat()} is already a rest day")
        working[origin] = DayRecord.rest(origin)
        if revision is not None:
            revision.add_delta(date=origin.isoformat(), operation=operation, field="workout", old=record.workout, new=REST_WORKOUT)
            revision.add_delta(date=origin.isoformat(), operation=operation, field="title", old=record.title, new=None)
        return

    after = modification.after
    if after is None:
        raise ModificationApplyError(index, f"{operation} needs a target state")

    if operation == "reschedule":
        target = after.target_date
        if target is None or target == origin:
            raise ModificationApplyError(index, "reschedule needs a different target date")
        if not start_date <= target <= end_date:
            raise ModificationApplyError(index, f"{target.isoformat()} is outside the plan")
        occupant = working.get(target)
        if occupant is not None and not is_rest_workout(occupant.workout):
            raise ModificationApplyError(
                index,
                f"{target.isoformat()} already has '{occupant.title or occupant.workout}'",
            )
        moved = record.model_copy(
            update={
                "date": target,
                "workout": after.workout if after.workout is not None else record.workout,
                "title": after.title if after.title is not None else record.title,
            }
        )
        working[target] = moved
        working[origin] = DayRecord.rest(origin)
        if revision is not None:
            revision.add_delta(date=origin.isoformat(), operation=operation, field="workout", old=record.workout, new=REST_WORKOUT)
            revision.add_delta(date=origin.isoformat(), operation=operation, field="date", old=origin.isoformat(), new=target.isoformat())
            revision.add_delta(
                date=target.isoformat(),
                operation=operation,
                field="workout",
                old=occupant.workout if occupant is not None else None,
                new=moved.workout,
            )
        return

    # modify
    if after.workout is None and after.title is None:
        raise ModificationApplyError(index, "modify needs a new workout or title")
    updated = record.model_copy(
        update={
            "workout": after.workout if after.workout is not None else record.workout,
            "title": after.title if after.title is not None else record.title,
        }
    )
    if updated == record:
        raise ModificationApplyError(index, f"{origin.isoformat()} already shows this workout")
    working[origin] = updated
    if revision is not None:
        revision.add_delta(date=origin.isoformat(), operation=operation, field="workout", old=record.workout, new=updated.workout)
        revision.add_delta(date=origin.isoformat(), operation=operation, field="title", old=record.title, new=updated.title)


def apply_modifications(
    days: Mapping[date, DayRecord],
    modifications: Sequence[Modification],
    *,
    start_date: date,
    revision: PlanRevisionBuilder | None = None,
) -> dict[date, DayRecord]:
    """Apply all modifications or none.

    Args:
        days: Current canonical day list (not mutated)
        modifications: Ordered batch to apply
        start_date: Plan start date; reschedule targets must stay inside the plan
        revision: Optional builder that records field deltas

    Returns:
        New day list with every modification applied

    Raises:
        ModificationApplyError: If any modification cannot be applied
    """
    if not modifications:
        raise ModificationApplyError(0, "the batch is empty")

    working = dict(days)
    in_range = [d for d in working if d >= start_date]
    if not in_range:
        raise ModificationApplyError(0, "the plan has no days")
    end_date = max(in_range)

    for index, modification in enumerate(modifications):
        try:
            _apply_one(working, index, modification, start_date, end_date, revision)
        except ModificationApplyError as e:
            logger.warning(
                "Modification batch rejected",
                index=index,
                operation=modification.operation,
                date=modification.date.isoformat(),
                reason=e.reason,
            )
            raise

    return dict(sorted(working.items()))
