"""Relative date phrase resolution.

Resolution is pure: the caller always supplies the reference date and time
zone, so the same inputs always give the same dates. Nothing here reads the
wall clock.

A bare weekday name ("Friday") is always ambiguous and yields two candidates,
the nearest occurrence on or after the reference date and the one a week
later. Qualified phrases ("next Friday", "last Monday", "today") are never
ambiguous.
"""

import re
from datetime import date, datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from pydantic import BaseModel, ConfigDict

from training_planner.core.errors import AmbiguousPhraseError
from training_planner.plans.normalizer import plan_week_number

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
WEEKDAY_SHORT = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

WEEKDAY_ABBREVIATIONS = {
    "mon": "monday",
    "tue": "tuesday",
    "tues": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "thur": "thursday",
    "thurs": "thursday",
    "fri": "friday",
    "sat": "saturday",
    "sun": "sunday",
}

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_QUALIFIED_WEEKDAY = re.compile(rf"^(next|last|this) ({'|'.join(WEEKDAYS)})$")
_BARE_WEEKDAY = re.compile(rf"^({'|'.join(WEEKDAYS)})$")

Relative = Literal["past", "today", "future"]


class ResolvedDate(BaseModel):
    """One candidate calendar date for a phrase."""

    model_config = ConfigDict(frozen=True)

    iso_date: date
    weekday: str
    relative: Relative
    days_from_reference: int
    human_label: str
    week_number: int | None = None


class DateResolution(BaseModel):
    """Outcome of resolving one phrase.

    ``recognized=False`` means the phrase was not understood and should be
    left untouched. ``ambiguous=True`` means ``candidates`` holds the options
    to offer in a clarification; otherwise ``candidates`` holds the resolved
    date(s) (two for a weekend).
    """

    model_config = ConfigDict(frozen=True)

    phrase: str
    normalized_phrase: str
    recognized: bool
    ambiguous: bool = False
    candidates: tuple[ResolvedDate, ...] = ()

    @property
    def dates(self) -> list[date]:
        if not self.recognized or self.ambiguous:
            return []
        return [c.iso_date for c in self.candidates]

    @property
    def date(self) -> date | None:
        dates = self.dates
        return dates[0] if dates else None


def normalize_phrase(phrase: str) -> str:
    """Lower-case, strip punctuation, expand abbreviations, drop plural/possessive."""
    normalized = phrase.lower().strip()
    normalized = re.sub(r"['’]s\b", "", normalized)
    normalized = re.sub(r"['’,]", "", normalized)
    normalized = re.sub(r"\s+", " ", normalized)
    for abbreviation, full in WEEKDAY_ABBREVIATIONS.items():
        normalized = re.sub(rf"\b{abbreviation}\b", full, normalized)
    for day in WEEKDAYS:
        normalized = re.sub(rf"\b{day}s\b", day, normalized)
    return normalized


def to_zone(timezone: str | ZoneInfo | None) -> ZoneInfo:
    """Coerce a time zone name to ZoneInfo, defaulting to UTC if invalid/missing."""
    if isinstance(timezone, ZoneInfo):
        return timezone
    try:
        return ZoneInfo(timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone, falling back to UTC", timezone=timezone)
        return ZoneInfo("UTC")


def local_reference_date(reference: date | datetime, timezone: str | ZoneInfo | None) -> date:
    """Calendar date of ``reference`` in ``timezone``.

    Aware datetimes are converted into the zone; naive datetimes and plain
    dates are taken as already local.
    """
    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            return reference.astimezone(to_zone(timezone)).date()
        return reference.date()
    return reference


def format_short(day: date) -> str:
    return f"{day.strftime('%b')} {day.day}"


class DateResolver:
    """Resolves relative date phrases against a caller-supplied reference date.

    Args:
        plan_start_date: Optional plan start; when given, candidates carry
            their 1-based plan week number.
    """

    def __init__(self, plan_start_date: date | None = None) -> None:
        self.plan_start_date = plan_start_date

    def resolve(
        self,
        phrase: str,
        reference_date: date | datetime,
        timezone: str | ZoneInfo | None = None,
    ) -> DateResolution:
        today = local_reference_date(reference_date, timezone)
        normalized = normalize_phrase(phrase)

        if normalized == "today":
            return self._resolved(phrase, normalized, today, [today])
        if normalized == "tomorrow":
            return self._resolved(phrase, normalized, today, [today + timedelta(days=1)])
        if normalized == "yesterday":
            return self._resolved(phrase, normalized, today, [today - timedelta(days=1)])

        qualified = _QUALIFIED_WEEKDAY.match(normalized)
        if qualified:
            qualifier, weekday = qualified.groups()
            target = WEEKDAYS.index(weekday)
            if qualifier == "next":
                day = self._upcoming(today, target, include_today=False)
            elif qualifier == "this":
                day = self._upcoming(today, target, include_today=True)
            else:
                day = self._previous(today, target)
            return self._resolved(phrase, normalized, today, [day])

        bare = _BARE_WEEKDAY.match(normalized)
        if bare:
            nearest = self._upcoming(today, WEEKDAYS.index(bare.group(1)), include_today=True)
            options = [nearest, nearest + timedelta(days=7)]
            return DateResolution(
                phrase=phrase,
                normalized_phrase=normalized,
                recognized=True,
                ambiguous=True,
                candidates=tuple(self._target(today, d) for d in options),
            )

        if normalized in {"this weekend", "next weekend"}:
            if normalized == "next weekend":
                saturday = self._upcoming(today, 5, include_today=False)
            elif today.weekday() == 6:
                saturday = today - timedelta(days=1)
            else:
                saturday = self._upcoming(today, 5, include_today=True)
            return self._resolved(phrase, normalized, today, [saturday, saturday + timedelta(days=1)])

        if _ISO_DATE.match(normalized):
            try:
                explicit = date.fromisoformat(normalized)
            except ValueError:
                return DateResolution(phrase=phrase, normalized_phrase=normalized, recognized=False)
            return self._resolved(phrase, normalized, today, [explicit])

        return DateResolution(phrase=phrase, normalized_phrase=normalized, recognized=False)

    def resolve_one(
        self,
        phrase: str,
        reference_date: date | datetime,
        timezone: str | ZoneInfo | None = None,
    ) -> date:
        """Resolve to exactly one date.

        Raises:
            AmbiguousPhraseError: If the phrase has more than one reading
            ValueError: If the phrase is not recognized
        """
        resolution = self.resolve(phrase, reference_date, timezone)
        if not resolution.recognized:
            raise ValueError(f"Unrecognized date phrase: {phrase!r}")
        if resolution.ambiguous:
            raise AmbiguousPhraseError(phrase, [c.iso_date.isoformat() for c in resolution.candidates])
        return resolution.candidates[0].iso_date

    @staticmethod
    def _upcoming(today: date, weekday: int, *, include_today: bool) -> date:
        ahead = (weekday - today.weekday()) % 7
        if ahead == 0 and not include_today:
            ahead = 7
        return today + timedelta(days=ahead)

    @staticmethod
    def _previous(today: date, weekday: int) -> date:
        back = (today.weekday() - weekday) % 7
        return today - timedelta(days=back or 7)

    def _resolved(self, phrase: str, normalized: str, today: date, days: list[date]) -> DateResolution:
        return DateResolution(
            phrase=phrase,
            normalized_phrase=normalized,
            recognized=True,
            candidates=tuple(self._target(today, d) for d in days),
        )

    def _target(self, today: date, day: date) -> ResolvedDate:
        delta = (day - today).days
        relative: Relative = "past" if delta < 0 else "today" if delta == 0 else "future"
        weekday = WEEKDAY_SHORT[day.weekday()]
        week_number = plan_week_number(day, self.plan_start_date) if self.plan_start_date else None
        return ResolvedDate(
            iso_date=day,
            weekday=weekday,
            relative=relative,
            days_from_reference=delta,
            human_label=_human_label(day, weekday, delta),
            week_number=week_number,
        )


def _human_label(day: date, weekday: str, delta: int) -> str:
    formatted = format_short(day)
    if delta == 0:
        return f"Today, {formatted}"
    if delta == -1:
        return f"Yesterday, {formatted}"
    if delta == 1:
        return f"Tomorrow, {formatted}"
    if delta < 0:
        return f"{weekday}, {formatted} ({-delta} days ago)"
    return f"{weekday}, {formatted} (in {delta} days)"


def resolve(phrase: str, reference_date: date | datetime, timezone: str | ZoneInfo | None = None) -> DateResolution:
    """Resolve ``phrase`` relative to ``reference_date`` in ``timezone``."""
    return DateResolver().resolve(phrase, reference_date, timezone)
