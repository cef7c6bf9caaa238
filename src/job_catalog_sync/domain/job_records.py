"""Catalog job record entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class JobStatus(StrEnum):
    """Lifecycle status of a catalog job."""

    ACTIVE = "active"
    FILLED = "filled"
    EXPIRED = "expired"
    DRAFT = "draft"


class ShiftType(StrEnum):
    """Shift type derived from free-text shift descriptions."""

    DAY = "Day"
    NIGHT = "Night"
    EVENING = "Evening"


@dataclass(slots=True, frozen=True)
class Coordinates:
    """Geographic position of a job location."""

    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class JobLocation:
    """Structured job location."""

    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    coordinates: Coordinates | None = None


@dataclass(slots=True, frozen=True)
class JobDuration:
    """Assignment dates and weekly hours."""

    start_date: datetime | None = None
    end_date: datetime | None = None
    weekly_hours: int | None = None


@dataclass(slots=True, frozen=True)
class JobCompensation:
    """Pay figures."""

    pay_rate: float | None = None
    housing_stipend: float | None = None


@dataclass(slots=True, frozen=True)
class JobShift:
    """Structured shift. Unset fields mean unknown, not absent."""

    type: ShiftType | None = None
    hours: int | None = None
    pattern: str | None = None


@dataclass(slots=True, frozen=True)
class JobRequirements:
    """Structured requirements. `min_experience_years=None` means unknown."""

    certifications: tuple[str, ...] = ()
    min_experience_years: int | None = None
    skills: tuple[str, ...] = ()


@dataclass(slots=True)
class CatalogJobRecord:
    """Canonical catalog record keyed by the upstream identifier.

    `created_at` and `updated_at` are owned by the catalog store and stay unset
    on records produced by the transformer.
    """

    upstream_id: str
    title: str
    specialty: str
    facility_name: str | None = None
    location: JobLocation = field(default_factory=JobLocation)
    duration: JobDuration = field(default_factory=JobDuration)
    compensation: JobCompensation = field(default_factory=JobCompensation)
    shift: JobShift = field(default_factory=JobShift)
    requirements: JobRequirements = field(default_factory=JobRequirements)
    status: JobStatus = JobStatus.ACTIVE
    is_featured: bool = False
    is_urgent: bool = False
    source_updated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "CatalogJobRecord",
    "Coordinates",
    "JobCompensation",
    "JobDuration",
    "JobLocation",
    "JobRequirements",
    "JobShift",
    "JobStatus",
    "ShiftType",
]
