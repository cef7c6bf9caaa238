"""Rule tables for best-effort extraction from free-text upstream fields.

Every extractor returns `None` (or an empty tuple) when nothing matches. Callers
must read that as "unknown", never as "not required".
"""

from __future__ import annotations

import re
from typing import Final

from job_catalog_sync.domain.job_records import JobShift, ShiftType

CERTIFICATION_VOCABULARY: Final = (
    "BLS",
    "ACLS",
    "PALS",
    "TNCC",
    "CCRN",
    "CEN",
    "CNOR",
    "RN",
    "LPN",
    "CNA",
)

# A vocabulary token directly followed by "license"/"licensure" names a licence, not a certification.
_CERTIFICATION_PATTERN: Final = re.compile(
    r"\b(" + "|".join(CERTIFICATION_VOCABULARY) + r")\b(?!\s+licen[cs](?:e|ure))",
    re.IGNORECASE,
)

_EXPERIENCE_PATTERN: Final = re.compile(
    r"(\d+)\s*\+?\s*years?(?:\s+of)?(?:\s+[A-Za-z/&-]+){0,3}?\s+experience",
    re.IGNORECASE,
)

SHIFT_TYPE_RULES: Final = (
    (ShiftType.DAY, re.compile(r"\bday", re.IGNORECASE)),
    (ShiftType.NIGHT, re.compile(r"\bnight", re.IGNORECASE)),
    (ShiftType.EVENING, re.compile(r"\bevening", re.IGNORECASE)),
)

_SHIFT_HOURS_PATTERN: Final = re.compile(r"(\d+)\s*hour", re.IGNORECASE)
_SHIFT_PATTERN_PATTERN: Final = re.compile(r"(\d+)x(\d+)", re.IGNORECASE)
_WEEKLY_HOURS_PATTERN: Final = re.compile(
    r"(\d+)\s*hours?\s*(?:per|a|/)\s*week", re.IGNORECASE
)

SKILL_VOCABULARY: Final = (
    "Ventilator",
    "IV",
    "Infusion",
    "Medication Administration",
    "Patient Assessment",
    "Wound Care",
    "Trauma",
    "Triage",
    "Electronic Medical Records",
    "EMR",
    "Epic",
    "Cerner",
    "Meditech",
    "Charting",
    "Documentation",
    "Care Planning",
)

_SKILL_PATTERNS: Final = tuple(
    (skill, re.compile(r"\b" + re.escape(skill) + r"\b", re.IGNORECASE))
    for skill in SKILL_VOCABULARY
)


def extract_certifications(text: str | None) -> tuple[str, ...]:
    """Known certification abbreviations in order of first appearance, deduplicated."""

    if not text:
        return ()
    found: list[str] = []
    for match in _CERTIFICATION_PATTERN.finditer(text):
        certification = match.group(1).upper()
        if certification not in found:
            found.append(certification)
    return tuple(found)


def extract_min_experience_years(text: str | None) -> int | None:
    """Integer from the first `<n>+ years ... experience` phrase."""

    if not text:
        return None
    match = _EXPERIENCE_PATTERN.search(text)
    if match is None:
        return None
    return int(match.group(1))


def extract_skills(text: str | None) -> tuple[str, ...]:
    """Known skills mentioned as whole words, in vocabulary order."""

    if not text:
        return ()
    return tuple(skill for skill, pattern in _SKILL_PATTERNS if pattern.search(text))


def extract_shift_type(text: str | None) -> ShiftType | None:
    """First matching keyword in Day, Night, Evening precedence."""

    if not text:
        return None
    for shift_type, pattern in SHIFT_TYPE_RULES:
        if pattern.search(text):
            return shift_type
    return None


def extract_shift_hours(text: str | None) -> int | None:
    """Integer from the first `<n> hour` phrase."""

    if not text:
        return None
    match = _SHIFT_HOURS_PATTERN.search(text)
    if match is None:
        return None
    return int(match.group(1))


def extract_shift_pattern(text: str | None) -> str | None:
    """First `<n>x<m>` token, verbatim."""

    if not text:
        return None
    match = _SHIFT_PATTERN_PATTERN.search(text)
    if match is None:
        return None
    return match.group(0)


def extract_shift(text: str | None) -> JobShift:
    """Structured shift from free text."""

    return JobShift(
        type=extract_shift_type(text),
        hours=extract_shift_hours(text),
        pattern=extract_shift_pattern(text),
    )


def weekly_hours_from_shift(text: str | None) -> int | None:
    """Weekly hours implied by `<n>x<m>` or stated as `<n> hours per week`."""

    if not text:
        return None
    pattern = _SHIFT_PATTERN_PATTERN.search(text)
    if pattern is not None:
        return int(pattern.group(1)) * int(pattern.group(2))
    weekly = _WEEKLY_HOURS_PATTERN.search(text)
    if weekly is not None:
        return int(weekly.group(1))
    return None


__all__ = [
    "CERTIFICATION_VOCABULARY",
    "SHIFT_TYPE_RULES",
    "SKILL_VOCABULARY",
    "extract_certifications",
    "extract_min_experience_years",
    "extract_shift",
    "extract_shift_hours",
    "extract_shift_pattern",
    "extract_shift_type",
    "extract_skills",
    "weekly_hours_from_shift",
]
