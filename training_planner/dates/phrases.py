"""Date phrase extraction from free-text chat messages.

Finds qualified phrases ("next friday", "tomorrow", "this weekend", ISO dates)
and bare weekday names, including abbreviations (tue, thurs), possessives
(friday's) and plurals (fridays). Bare weekdays are the ambiguous ones.
"""

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from training_planner.dates.resolver import DateResolution, DateResolver, normalize_phrase

_WEEKDAY_FULL = "(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_WEEKDAY_ABBREV = "(?:mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)"
# "sat" and "sun" are ordinary English words; only match them when qualified.
_BARE_ABBREV = "(?:mon|tue|tues|wed|thu|thur|thurs|fri)"
_POSSESSIVE = "(?:'s|’s|s)?"

QUALIFIED_PATTERNS = (
    re.compile(rf"\b(?:next|last|this)\s+{_WEEKDAY_FULL}{_POSSESSIVE}\b", re.IGNORECASE),
    re.compile(rf"\b(?:next|last|this)\s+{_WEEKDAY_ABBREV}{_POSSESSIVE}\b", re.IGNORECASE),
    re.compile(r"\b(?:today|tomorrow|yesterday)(?:'s|’s)?\b", re.IGNORECASE),
    re.compile(r"\b(?:this|next)\s+weekend(?:'s|’s)?\b", re.IGNORECASE),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
)

AMBIGUOUS_PATTERNS = (
    re.compile(rf"\b{_WEEKDAY_FULL}{_POSSESSIVE}\b", re.IGNORECASE),
    re.compile(rf"\b{_BARE_ABBREV}{_POSSESSIVE}\b", re.IGNORECASE),
)

MODIFICATION_KEYWORDS = (
    "move",
    "swap",
    "change",
    "switch",
    "shift",
    "cancel",
    "skip",
    "delete",
    "remove",
    "add",
    "insert",
    "reschedule",
)


class DatePhrase(BaseModel):
    model_config = ConfigDict(frozen=True)

    phrase: str
    normalized_phrase: str
    start: int
    end: int
    ambiguous: bool


class AnnotatedMessage(BaseModel):
    """A chat message with its resolvable date phrases annotated inline.

    Ambiguous and unrecognized phrases are left untouched in ``text``.
    """

    model_config = ConfigDict(frozen=True)

    original: str
    text: str
    resolutions: tuple[DateResolution, ...] = ()
    ambiguous: tuple[DateResolution, ...] = ()

    @property
    def resolved_dates(self) -> dict[str, list[str]]:
        return {r.phrase: [d.isoformat() for d in r.dates] for r in self.resolutions if r.dates}


def extract_date_phrases(message: str) -> list[DatePhrase]:
    """Find date phrases in ``message``, ordered by position.

    Qualified matches win over bare weekday matches that overlap them.
    """
    phrases: list[DatePhrase] = []

    for pattern in QUALIFIED_PATTERNS:
        for match in pattern.finditer(message):
            phrases.append(
                DatePhrase(
                    phrase=match.group(0),
                    normalized_phrase=normalize_phrase(match.group(0)),
                    start=match.start(),
                    end=match.end(),
                    ambiguous=False,
                )
            )

    for pattern in AMBIGUOUS_PATTERNS:
        for match in pattern.finditer(message):
            overlaps = any(p.start <= match.start() < p.end for p in phrases)
            if overlaps:
                continue
            phrases.append(
                DatePhrase(
                    phrase=match.group(0),
                    normalized_phrase=normalize_phrase(match.group(0)),
                    start=match.start(),
                    end=match.end(),
                    ambiguous=True,
                )
            )

    phrases.sort(key=lambda p: p.start)
    return phrases


def has_ambiguous_date_reference(message: str) -> bool:
    return any(p.ambiguous for p in extract_date_phrases(message))


def has_modification_intent(message: str) -> bool:
    """True when the message asks to edit the plan and mentions a date."""
    lowered = message.lower()
    if not any(re.search(rf"\b{keyword}", lowered) for keyword in MODIFICATION_KEYWORDS):
        return False
    return bool(extract_date_phrases(message))


def _annotation(resolution: DateResolution) -> str | None:
    dates = resolution.dates
    if len(dates) == 1:
        if resolution.phrase == dates[0].isoformat():
            return None
        return f"{resolution.phrase} ({dates[0].isoformat()})"
    return f"{resolution.phrase} ({dates[0].isoformat()} to {dates[-1].isoformat()})"


def annotate_message(
    message: str,
    reference_date: date | datetime,
    timezone: str | ZoneInfo | None = None,
    *,
    resolver: DateResolver | None = None,
) -> AnnotatedMessage:
    """Annotate resolvable date phrases in ``message`` with their ISO dates.

    Args:
        message: Raw user message
        reference_date: "Today" as supplied by the caller
        timezone: User time zone
        resolver: Optional resolver (e.g. one that knows the plan start date)

    Returns:
        AnnotatedMessage with resolved and ambiguous phrases listed separately
    """
    resolver = resolver or DateResolver()
    resolutions: list[DateResolution] = []
    ambiguous: list[DateResolution] = []
    replacements: list[tuple[int, int, str]] = []

    for found in extract_date_phrases(message):
        resolution = resolver.resolve(found.phrase, reference_date, timezone)
        if not resolution.recognized:
            continue
        if resolution.ambiguous:
            ambiguous.append(resolution)
            continue
        resolutions.append(resolution)
        annotation = _annotation(resolution)
        if annotation is not None:
            replacements.append((found.start, found.end, annotation))

    text = message
    for start, end, replacement in reversed(replacements):
        text = text[:start] + replacement + text[end:]

    return AnnotatedMessage(
        original=message,
        text=text,
        resolutions=tuple(resolutions),
        ambiguous=tuple(ambiguous),
    )
