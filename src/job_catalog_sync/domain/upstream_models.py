"""Pydantic models for upstream job payloads and webhook envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class UpstreamModel(BaseModel):
    """Base model for loosely-typed upstream JSON."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class UpstreamJobPayload(UpstreamModel):
    """Raw job record as returned by the upstream listing endpoints or webhooks.

    Only the identifier is required. Everything else is kept loose because the
    upstream mixes numbers and strings freely; the transformer does the parsing.
    """

    upstream_id: str = Field(validation_alias=AliasChoices("id", "upstream_id", "upstreamId"))
    title: str | None = None
    specialty: str | None = None
    facility_name: str | None = Field(
        default=None, validation_alias=AliasChoices("facility_name", "facilityName")
    )
    facility: dict[str, Any] | None = None
    city: str | None = None
    state: str | None = None
    zip_code: Any = Field(default=None, validation_alias=AliasChoices("zip_code", "zipCode"))
    location: dict[str, Any] | None = None
    coordinates: dict[str, Any] | None = None
    start_date: Any = Field(default=None, validation_alias=AliasChoices("start_date", "startDate"))
    end_date: Any = Field(default=None, validation_alias=AliasChoices("end_date", "endDate"))
    weekly_hours: Any = Field(
        default=None, validation_alias=AliasChoices("weekly_hours", "weeklyHours")
    )
    shift_details: str | None = Field(
        default=None, validation_alias=AliasChoices("shift_details", "shiftDetails", "shift")
    )
    requirements: str | None = None
    description: str | None = None
    pay_rate: Any = Field(default=None, validation_alias=AliasChoices("pay_rate", "payRate"))
    housing_stipend: Any = Field(
        default=None, validation_alias=AliasChoices("housing_stipend", "housingStipend")
    )
    status: str | None = None
    is_urgent: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_urgent", "isUrgent", "urgent")
    )
    updated_at: Any = Field(default=None, validation_alias=AliasChoices("updated_at", "updatedAt"))

    @field_validator("upstream_id", mode="before")
    @classmethod
    def coerce_identifier(cls, value: object) -> object:
        """Accept numeric identifiers and reject blank ones."""

        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValueError("upstream identifier cannot be blank")
            return stripped
        return value


@dataclass(slots=True, frozen=True)
class UpstreamJobPage:
    """One page of the upstream job listing. Items stay raw until transformed."""

    jobs: list[dict[str, Any]]
    page: int
    has_more: bool


class WebhookEventType(StrEnum):
    """Single-record change notifications pushed by the upstream."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class WebhookEvent(UpstreamModel):
    """Webhook envelope. `data` carries the job payload for created/updated events."""

    event_type: WebhookEventType = Field(
        validation_alias=AliasChoices("type", "event_type", "eventType")
    )
    upstream_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("upstream_id", "upstreamId", "job_id", "jobId"),
    )
    event_id: str | None = Field(default=None, validation_alias=AliasChoices("event_id", "eventId"))
    data: dict[str, Any] | None = None

    @field_validator("event_type", mode="before")
    @classmethod
    def strip_resource_prefix(cls, value: object) -> object:
        """Accept `job.created` as well as `created`."""

        if isinstance(value, str):
            return value.strip().lower().removeprefix("job.")
        return value

    @model_validator(mode="after")
    def resolve_identifier(self) -> "WebhookEvent":
        """Fill the identifier from the payload and require a payload where needed."""

        payload_id = None if self.data is None else self.data.get("id")
        if self.upstream_id is None and payload_id is not None:
            self.upstream_id = str(payload_id)
        if self.upstream_id is None or not self.upstream_id.strip():
            raise ValueError("webhook event must carry an upstream identifier")
        if payload_id is not None and str(payload_id).strip() != self.upstream_id.strip():
            raise ValueError(
                f"payload id '{payload_id}' does not match upstream id '{self.upstream_id}'"
            )
        if self.event_type is not WebhookEventType.DELETED and self.data is None:
            raise ValueError(f"'{self.event_type}' events must carry a job payload")
        return self


__all__ = [
    "UpstreamJobPage",
    "UpstreamJobPayload",
    "UpstreamModel",
    "WebhookEvent",
    "WebhookEventType",
]
