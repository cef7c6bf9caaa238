"""Map upstream job payloads onto catalog job records."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta
from typing import Any, Final

from pydantic import ValidationError

from job_catalog_sync.application.transform.extraction_rules import (
    extract_certifications,
    extract_min_experience_years,
    extract_shift,
    extract_skills,
    weekly_hours_from_shift,
)
from job_catalog_sync.domain.errors import RecordTransformError
from job_catalog_sync.domain.job_records import (
    CatalogJobRecord,
    Coordinates,
    JobCompensation,
    JobDuration,
    JobLocation,
    JobRequirements,
    JobStatus,
)
from job_catalog_sync.domain.upstream_models import UpstreamJobPayload

ORIGINAL_PAYLOAD_METADATA_KEY: Final = "original_payload"
LAST_SYNCED_AT_METADATA_KEY: Final = "last_synced_at"

_URGENT_START_WINDOW: Final = timedelta(days=14)
_URGENT_KEYWORDS: Final = ("urgent", "immediate", "asap", "critical need")

_TITLE_ABBREVIATIONS: Final = (
    "RN",
    "LPN",
    "ICU",
    "ER",
    "CCU",
    "PACU",
    "OB",
    "GYN",
    "OBGYN",
    "OT",
    "PT",
    "ST",
)
_TITLE_ABBREVIATION_PATTERNS: Final = tuple(
    (abbreviation, re.compile(rf"\b{abbreviation.capitalize()}\b"))
    for abbreviation in _TITLE_ABBREVIATIONS
)

SPECIALTY_MAP: Final = {
    "icu": "ICU",
    "intensive care": "ICU",
    "intensive care unit": "ICU",
    "er": "Emergency",
    "emergency room": "Emergency",
    "emergency department": "Emergency",
    "med surg": "Med/Surg",
    "medical surgical": "Med/Surg",
    "medical/surgical": "Med/Surg",
    "telemetry": "Telemetry",
    "tele": "Telemetry",
    "labor and delivery": "Labor & Delivery",
    "l&d": "Labor & Delivery",
    "labor & delivery": "Labor & Delivery",
    "operating room": "OR",
    "or": "OR",
    "pacu": "PACU",
    "post anesthesia": "PACU",
    "post anesthesia care unit": "PACU",
    "cath lab": "Cath Lab",
    "catheterization laboratory": "Cath Lab",
    "physical therapy": "Physical Therapy",
    "pt": "Physical Therapy",
    "occupational therapy": "Occupational Therapy",
    "ot": "Occupational Therapy",
    "speech therapy": "Speech Therapy",
    "st": "Speech Therapy",
    "slp": "Speech Therapy",
}

STATUS_MAP: Final = {
    "active": JobStatus.ACTIVE,
    "open": JobStatus.ACTIVE,
    "available": JobStatus.ACTIVE,
    "filled": JobStatus.FILLED,
    "closed": JobStatus.FILLED,
    "expired": JobStatus.EXPIRED,
    "draft": JobStatus.DRAFT,
    "pending": JobStatus.DRAFT,
}


def transform_job(
    raw: UpstreamJobPayload | Mapping[str, Any],
    *,
    synced_at: datetime,
) -> CatalogJobRecord:
    """Build the structured catalog record for one upstream job.

    Deterministic for a given payload and `synced_at`. Store-owned fields
    (`created_at`, `updated_at`, `is_featured`) are left at their defaults.
    Raises `RecordTransformError` for payloads that cannot form a record.
    """

    payload, original = _validate(raw)
    title = _normalize_title(payload.title)
    if not title:
        raise RecordTransformError(
            f"Job '{payload.upstream_id}' has no title.",
            upstream_id=payload.upstream_id,
        )

    start_date = _parse_datetime(payload.start_date)
    shift_text = payload.shift_details
    return CatalogJobRecord(
        upstream_id=payload.upstream_id,
        title=title,
        specialty=_map_specialty(payload.specialty),
        facility_name=_clean_str(payload.facility_name) or _clean_str(_nested(payload.facility, "name")),
        location=JobLocation(
            city=_clean_str(payload.city) or _clean_str(_nested(payload.location, "city")),
            state=_clean_str(payload.state) or _clean_str(_nested(payload.location, "state")),
            zip_code=_clean_str(payload.zip_code) or _clean_str(_nested(payload.location, "zip_code")),
            coordinates=_extract_coordinates(payload),
        ),
        duration=JobDuration(
            start_date=start_date,
            end_date=_parse_datetime(payload.end_date),
            weekly_hours=_parse_int(payload.weekly_hours) or weekly_hours_from_shift(shift_text),
        ),
        compensation=JobCompensation(
            pay_rate=_parse_amount(payload.pay_rate),
            housing_stipend=_parse_amount(payload.housing_stipend),
        ),
        shift=extract_shift(shift_text),
        requirements=JobRequirements(
            certifications=extract_certifications(payload.requirements),
            min_experience_years=extract_min_experience_years(payload.requirements),
            skills=extract_skills(payload.requirements),
        ),
        status=_map_status(payload.status),
        is_urgent=_is_urgent(payload, start_date, synced_at),
        source_updated_at=_parse_datetime(payload.updated_at),
        metadata={
            ORIGINAL_PAYLOAD_METADATA_KEY: original,
            LAST_SYNCED_AT_METADATA_KEY: synced_at.isoformat(),
        },
    )


def _validate(
    raw: UpstreamJobPayload | Mapping[str, Any],
) -> tuple[UpstreamJobPayload, dict[str, Any]]:
    if isinstance(raw, UpstreamJobPayload):
        return raw, raw.model_dump(mode="json", exclude_none=True)
    if not isinstance(raw, Mapping):
        raise RecordTransformError(f"Job payload must be an object, got {type(raw).__name__}.")

    original = dict(raw)
    raw_id = original.get("id")
    try:
        return UpstreamJobPayload.model_validate(original), original
    except ValidationError as exc:
        upstream_id = None if raw_id is None else str(raw_id)
        raise RecordTransformError(
            f"Job '{upstream_id}' is malformed: {exc.error_count()} invalid field(s).",
            upstream_id=upstream_id,
        ) from exc


def _normalize_title(title: str | None) -> str:
    if not title:
        return ""
    words = title.split()
    normalized = " ".join(word[:1].upper() + word[1:].lower() for word in words)
    for abbreviation, pattern in _TITLE_ABBREVIATION_PATTERNS:
        normalized = pattern.sub(abbreviation, normalized)
    return normalized


def _map_specialty(specialty: str | None) -> str:
    if not specialty or not specialty.strip():
        return "Other"
    mapped = SPECIALTY_MAP.get(specialty.strip().lower())
    if mapped is not None:
        return mapped
    return " ".join(word[:1].upper() + word[1:].lower() for word in specialty.split())


def _map_status(status: str | None) -> JobStatus:
    if not status:
        return JobStatus.ACTIVE
    return STATUS_MAP.get(status.strip().lower(), JobStatus.ACTIVE)


def _is_urgent(
    payload: UpstreamJobPayload,
    start_date: datetime | None,
    synced_at: datetime,
) -> bool:
    if payload.is_urgent:
        return True
    if start_date is not None and synced_at <= start_date <= synced_at + _URGENT_START_WINDOW:
        return True
    haystack = f"{payload.title or ''} {payload.description or ''}".lower()
    return any(keyword in haystack for keyword in _URGENT_KEYWORDS)


def _extract_coordinates(payload: UpstreamJobPayload) -> Coordinates | None:
    candidates = (
        payload.coordinates,
        _nested(payload.location, "coordinates"),
        _nested(payload.facility, "coordinates"),
    )
    for candidate in candidates:
        if not isinstance(candidate, Mapping):
            continue
        latitude = _parse_float(candidate.get("latitude", candidate.get("lat")))
        longitude = _parse_float(candidate.get("longitude", candidate.get("lng")))
        if latitude is not None and longitude is not None:
            return Coordinates(latitude=latitude, longitude=longitude)
    return None


def _nested(container: Mapping[str, Any] | None, key: str) -> Any:
    if not isinstance(container, Mapping):
        return None
    return container.get(key)


def _clean_str(value: object) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _parse_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = re.match(r"\s*(\d+)", value)
        if match is not None:
            return int(match.group(1))
    return None


def _parse_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _parse_amount(value: object) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r"[^\d.]", "", value)
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


__all__ = [
    "LAST_SYNCED_AT_METADATA_KEY",
    "ORIGINAL_PAYLOAD_METADATA_KEY",
    "SPECIALTY_MAP",
    "STATUS_MAP",
    "transform_job",
]
