from __future__ import annotations

from datetime import UTC, datetime

import pytest

from job_catalog_sync.application.transform import (
    extract_certifications,
    extract_min_experience_years,
    extract_shift,
    extract_skills,
    transform_job,
)
from job_catalog_sync.application.transform.job_record_transformer import (
    LAST_SYNCED_AT_METADATA_KEY,
    ORIGINAL_PAYLOAD_METADATA_KEY,
)
from job_catalog_sync.application.transform.extraction_rules import (
    extract_shift_hours,
    weekly_hours_from_shift,
)
from job_catalog_sync.domain.errors import RecordTransformError
from job_catalog_sync.domain.job_records import Coordinates, JobShift, JobStatus, ShiftType
from job_catalog_sync.domain.upstream_models import UpstreamJobPayload

SYNCED_AT = datetime(2024, 6, 1, tzinfo=UTC)


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": 42,
        "title": "icu rn - nights",
        "specialty": "intensive care",
        "facility_name": "Sutter Medical Center",
        "city": "Sacramento",
        "state": "CA",
        "zip_code": 95819,
        "coordinates": {"lat": 38.5556, "lng": -121.4689},
        "start_date": "2024-07-01",
        "end_date": "2024-09-28",
        "shift_details": "3x12 - Night Shift (7PM-7AM)",
        "requirements": "Active RN license, BLS and ACLS required. 2+ years ICU experience.",
        "description": "Join a busy 24-bed unit.",
        "pay_rate": "$2,450",
        "housing_stipend": 1200,
        "status": "open",
        "updated_at": "2024-05-30T10:15:00Z",
    }
    payload.update(overrides)
    return payload


def test_transform_maps_complete_payload() -> None:
    record = transform_job(_payload(), synced_at=SYNCED_AT)

    assert record.upstream_id == "42"
    assert record.title == "ICU RN - Nights"
    assert record.specialty == "ICU"
    assert record.facility_name == "Sutter Medical Center"
    assert record.location.city == "Sacramento"
    assert record.location.state == "CA"
    assert record.location.zip_code == "95819"
    assert record.location.coordinates == Coordinates(latitude=38.5556, longitude=-121.4689)
    assert record.duration.start_date == datetime(2024, 7, 1, tzinfo=UTC)
    assert record.duration.end_date == datetime(2024, 9, 28, tzinfo=UTC)
    assert record.duration.weekly_hours == 36
    assert record.compensation.pay_rate == 2450.0
    assert record.compensation.housing_stipend == 1200.0
    assert record.shift == JobShift(type=ShiftType.NIGHT, hours=None, pattern="3x12")
    assert record.requirements.certifications == ("BLS", "ACLS")
    assert record.requirements.min_experience_years == 2
    assert record.requirements.skills == ()
    assert record.status is JobStatus.ACTIVE
    assert record.is_urgent is False
    assert record.is_featured is False
    assert record.source_updated_at == datetime(2024, 5, 30, 10, 15, tzinfo=UTC)
    assert record.created_at is None
    assert record.updated_at is None


def test_transform_keeps_original_payload_and_sync_time_in_metadata() -> None:
    payload = _payload()

    record = transform_job(payload, synced_at=SYNCED_AT)

    assert record.metadata[ORIGINAL_PAYLOAD_METADATA_KEY] == payload
    assert record.metadata[LAST_SYNCED_AT_METADATA_KEY] == "2024-06-01T00:00:00+00:00"


def test_transform_is_deterministic() -> None:
    first = transform_job(_payload(), synced_at=SYNCED_AT)
    second = transform_job(_payload(), synced_at=SYNCED_AT)

    assert first == second


def test_transform_accepts_validated_payload_model() -> None:
    payload = UpstreamJobPayload.model_validate(_payload(id="job-7"))

    record = transform_job(payload, synced_at=SYNCED_AT)

    assert record.upstream_id == "job-7"
    assert record.title == "ICU RN - Nights"


def test_job_starting_within_two_weeks_is_urgent() -> None:
    record = transform_job(_payload(start_date="2024-06-10"), synced_at=SYNCED_AT)

    assert record.is_urgent is True


def test_job_starting_in_the_past_is_not_urgent_by_date() -> None:
    record = transform_job(_payload(start_date="2024-05-01"), synced_at=SYNCED_AT)

    assert record.is_urgent is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"description": "Immediate need for a night nurse."},
        {"title": "URGENT icu rn"},
        {"description": "Critical need, start ASAP"},
        {"is_urgent": True},
    ],
)
def test_urgency_from_keywords_or_explicit_flag(overrides: dict[str, object]) -> None:
    record = transform_job(_payload(**overrides), synced_at=SYNCED_AT)

    assert record.is_urgent is True


def test_missing_title_is_rejected() -> None:
    with pytest.raises(RecordTransformError) as exc_info:
        transform_job(_payload(title="   "), synced_at=SYNCED_AT)

    assert exc_info.value.upstream_id == "42"


def test_missing_identifier_is_rejected() -> None:
    payload = _payload()
    del payload["id"]

    with pytest.raises(RecordTransformError):
        transform_job(payload, synced_at=SYNCED_AT)


def test_non_object_payload_is_rejected() -> None:
    with pytest.raises(RecordTransformError):
        transform_job(["not", "a", "job"], synced_at=SYNCED_AT)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("specialty", "expected"),
    [
        ("ICU", "ICU"),
        ("Emergency Room", "Emergency"),
        ("med surg", "Med/Surg"),
        ("L&D", "Labor & Delivery"),
        ("oncology", "Oncology"),
        ("pediatric oncology", "Pediatric Oncology"),
        (None, "Other"),
        ("  ", "Other"),
    ],
)
def test_specialty_mapping(specialty: str | None, expected: str) -> None:
    record = transform_job(_payload(specialty=specialty), synced_at=SYNCED_AT)

    assert record.specialty == expected


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("open", JobStatus.ACTIVE),
        ("Closed", JobStatus.FILLED),
        ("expired", JobStatus.EXPIRED),
        ("pending", JobStatus.DRAFT),
        ("on-hold", JobStatus.ACTIVE),
        (None, JobStatus.ACTIVE),
    ],
)
def test_status_mapping(status: str | None, expected: JobStatus) -> None:
    record = transform_job(_payload(status=status), synced_at=SYNCED_AT)

    assert record.status is expected


def test_coordinates_fall_back_to_facility() -> None:
    record = transform_job(
        _payload(
            coordinates=None,
            facility_name=None,
            facility={"name": "Mercy General", "coordinates": {"latitude": 1.5, "longitude": 2.5}},
        ),
        synced_at=SYNCED_AT,
    )

    assert record.facility_name == "Mercy General"
    assert record.location.coordinates == Coordinates(latitude=1.5, longitude=2.5)


def test_incomplete_coordinates_are_dropped() -> None:
    record = transform_job(_payload(coordinates={"lat": 38.5}), synced_at=SYNCED_AT)

    assert record.location.coordinates is None


def test_explicit_weekly_hours_win_over_shift_pattern() -> None:
    record = transform_job(_payload(weekly_hours="40"), synced_at=SYNCED_AT)

    assert record.duration.weekly_hours == 40


def test_unparseable_amounts_and_dates_become_unknown() -> None:
    record = transform_job(
        _payload(pay_rate="DOE", start_date="next month"),
        synced_at=SYNCED_AT,
    )

    assert record.compensation.pay_rate is None
    assert record.duration.start_date is None


def test_extract_shift_from_hours_phrase() -> None:
    assert extract_shift("12 hour Day shift") == JobShift(type=ShiftType.DAY, hours=12, pattern=None)


def test_extract_shift_hours_requires_number_directly_before_hour() -> None:
    assert extract_shift_hours("10hours Night") == 10
    assert extract_shift_hours("12-hour nights") is None


def test_extract_shift_returns_unknown_for_empty_text() -> None:
    assert extract_shift(None) == JobShift()
    assert extract_shift("Flexible schedule") == JobShift()


def test_extract_shift_type_precedence() -> None:
    assert extract_shift("Day/Night rotation").type is ShiftType.DAY
    assert extract_shift("Evening shift").type is ShiftType.EVENING


def test_weekly_hours_from_shift() -> None:
    assert weekly_hours_from_shift("4x10 days") == 40
    assert weekly_hours_from_shift("40 hours per week") == 40
    assert weekly_hours_from_shift("Nights") is None


def test_extract_certifications_in_order_of_appearance() -> None:
    assert extract_certifications("RN, BLS required") == ("RN", "BLS")
    assert extract_certifications("BLS, bls and BLS") == ("BLS",)
    assert extract_certifications("Valid RN license and PALS") == ("PALS",)
    assert extract_certifications(None) == ()


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Minimum 3 years of experience", 3),
        ("5+ years acute care experience", 5),
        ("1 year experience preferred", 1),
        ("Experience preferred", None),
        (None, None),
    ],
)
def test_extract_min_experience_years(text: str | None, expected: int | None) -> None:
    assert extract_min_experience_years(text) == expected


def test_extract_skills_follows_vocabulary_order() -> None:
    assert extract_skills("Epic charting and IV therapy") == ("IV", "Epic", "Charting")
    assert extract_skills("No special skills") == ()
