"""PostgreSQL catalog store and sync state."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import asyncpg  # type: ignore[import-untyped]

from job_catalog_sync.domain.errors import CatalogStoreError, CatalogStoreUnavailableError
from job_catalog_sync.domain.job_records import (
    CatalogJobRecord,
    Coordinates,
    JobCompensation,
    JobDuration,
    JobLocation,
    JobRequirements,
    JobShift,
    JobStatus,
    ShiftType,
)
from job_catalog_sync.domain.ports import CatalogStore, SyncStateRepository
from job_catalog_sync.domain.sync_runs import SyncState

_SELECT_COLUMNS = """
    upstream_id,
    title,
    specialty,
    facility_name,
    location,
    duration,
    compensation,
    shift,
    requirements,
    status,
    is_featured,
    is_urgent,
    source_updated_at,
    created_at,
    updated_at,
    metadata
"""

_UNAVAILABLE_ERRORS = (
    OSError,
    TimeoutError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
)


class PostgresCatalogStore(CatalogStore, SyncStateRepository):
    """Catalog store backed by PostgreSQL.

    The stale-write guard lives in the upsert statement itself, so concurrent
    writers for one identifier are ordered by the row lock.
    """

    def __init__(
        self,
        dsn: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
    ) -> None:
        self._dsn = dsn
        self._min_pool_size = min_pool_size
        self._max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def upsert(self, record: CatalogJobRecord) -> CatalogJobRecord:
        """Insert or update in place, keeping `created_at` and `is_featured`."""

        with _translate_errors(f"upsert job '{record.upstream_id}'"):
            pool = await self._get_pool()
            row = await pool.fetchrow(
                f"""
                INSERT INTO catalog_jobs (
                    upstream_id,
                    title,
                    specialty,
                    facility_name,
                    location,
                    duration,
                    compensation,
                    shift,
                    requirements,
                    status,
                    is_featured,
                    is_urgent,
                    source_updated_at,
                    created_at,
                    updated_at,
                    metadata
                ) VALUES (
                    $1, $2, $3, $4, $5::jsonb, $6::jsonb, $7::jsonb, $8::jsonb, $9::jsonb,
                    $10, $11, $12, $13, NOW(), NOW(), $14::jsonb
                )
                ON CONFLICT (upstream_id) DO UPDATE SET
                    title = EXCLUDED.title,
                    specialty = EXCLUDED.specialty,
                    facility_name = EXCLUDED.facility_name,
                    location = EXCLUDED.location,
                    duration = EXCLUDED.duration,
                    compensation = EXCLUDED.compensation,
                    shift = EXCLUDED.shift,
                    requirements = EXCLUDED.requirements,
                    status = EXCLUDED.status,
                    is_urgent = EXCLUDED.is_urgent,
                    source_updated_at = EXCLUDED.source_updated_at,
                    updated_at = GREATEST(
                        NOW(),
                        catalog_jobs.updated_at + INTERVAL '1 microsecond'
                    ),
                    metadata = EXCLUDED.metadata
                WHERE catalog_jobs.source_updated_at IS NULL
                   OR EXCLUDED.source_updated_at IS NULL
                   OR EXCLUDED.source_updated_at >= catalog_jobs.source_updated_at
                RETURNING {_SELECT_COLUMNS}
                """,
                record.upstream_id,
                record.title,
                record.specialty,
                record.facility_name,
                json.dumps(_location_to_json(record.location)),
                json.dumps(_duration_to_json(record.duration)),
                json.dumps(_compensation_to_json(record.compensation)),
                json.dumps(_shift_to_json(record.shift)),
                json.dumps(_requirements_to_json(record.requirements)),
                record.status.value,
                record.is_featured,
                record.is_urgent,
                record.source_updated_at,
                json.dumps(record.metadata, default=str),
            )
            if row is None:
                # Stale write: the stored row has a newer source timestamp.
                row = await pool.fetchrow(
                    f"SELECT {_SELECT_COLUMNS} FROM catalog_jobs WHERE upstream_id = $1",
                    record.upstream_id,
                )
        if row is None:
            raise CatalogStoreError(f"Job '{record.upstream_id}' vanished during upsert.")
        return self._to_record(row)

    async def mark_expired(self, upstream_id: str) -> bool:
        """Set `status=expired`; every other column is left untouched."""

        with _translate_errors(f"expire job '{upstream_id}'"):
            pool = await self._get_pool()
            result = await pool.execute(
                "UPDATE catalog_jobs SET status = $2 WHERE upstream_id = $1",
                upstream_id,
                JobStatus.EXPIRED.value,
            )
        return result.endswith("1")

    async def get(self, upstream_id: str) -> CatalogJobRecord | None:
        """Return one record by upstream identifier."""

        with _translate_errors(f"read job '{upstream_id}'"):
            pool = await self._get_pool()
            row = await pool.fetchrow(
                f"SELECT {_SELECT_COLUMNS} FROM catalog_jobs WHERE upstream_id = $1",
                upstream_id,
            )
        if row is None:
            return None
        return self._to_record(row)

    async def count(self) -> int:
        """Return the number of stored records."""

        with _translate_errors("count jobs"):
            pool = await self._get_pool()
            value = await pool.fetchval("SELECT COUNT(*) FROM catalog_jobs")
        return int(value)

    async def get_sync_state(self) -> SyncState:
        """Return the current markers."""

        with _translate_errors("read sync state"):
            pool = await self._get_pool()
            row = await pool.fetchrow(
                "SELECT last_full_sync_at, incremental_watermark FROM sync_state WHERE id = 1"
            )
        if row is None:
            return SyncState()
        return SyncState(
            last_full_sync_at=row["last_full_sync_at"],
            incremental_watermark=row["incremental_watermark"],
        )

    async def record_full_sync(self, completed_at: datetime) -> None:
        """Store the completion time of a successful full sync."""

        with _translate_errors("record full sync"):
            pool = await self._get_pool()
            await pool.execute(
                """
                INSERT INTO sync_state (id, last_full_sync_at) VALUES (1, $1)
                ON CONFLICT (id) DO UPDATE SET last_full_sync_at = EXCLUDED.last_full_sync_at
                """,
                completed_at,
            )

    async def advance_incremental_watermark(self, watermark: datetime) -> None:
        """Move the watermark forward; older values are ignored."""

        with _translate_errors("advance incremental watermark"):
            pool = await self._get_pool()
            await pool.execute(
                """
                INSERT INTO sync_state (id, incremental_watermark) VALUES (1, $1)
                ON CONFLICT (id) DO UPDATE SET incremental_watermark = GREATEST(
                    sync_state.incremental_watermark,
                    EXCLUDED.incremental_watermark
                )
                """,
                watermark,
            )

    async def close(self) -> None:
        """Close the pool if it was initialized."""

        pool = self._pool
        self._pool = None
        if pool is not None:
            await pool.close()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_pool_size,
                    max_size=self._max_pool_size,
                )
                await self._ensure_schema(pool)
                self._pool = pool
        assert self._pool is not None
        return self._pool

    async def _ensure_schema(self, pool: asyncpg.Pool) -> None:
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS catalog_jobs (
                upstream_id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                specialty TEXT NOT NULL,
                facility_name TEXT,
                location JSONB NOT NULL DEFAULT '{}'::jsonb,
                duration JSONB NOT NULL DEFAULT '{}'::jsonb,
                compensation JSONB NOT NULL DEFAULT '{}'::jsonb,
                shift JSONB NOT NULL DEFAULT '{}'::jsonb,
                requirements JSONB NOT NULL DEFAULT '{}'::jsonb,
                status TEXT NOT NULL,
                is_featured BOOLEAN NOT NULL DEFAULT FALSE,
                is_urgent BOOLEAN NOT NULL DEFAULT FALSE,
                source_updated_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                metadata JSONB NOT NULL DEFAULT '{}'::jsonb
            );
            CREATE INDEX IF NOT EXISTS idx_catalog_jobs_status
                ON catalog_jobs (status);
            """
        )
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS sync_state (
                id SMALLINT PRIMARY KEY CHECK (id = 1),
                last_full_sync_at TIMESTAMPTZ,
                incremental_watermark TIMESTAMPTZ
            );
            """
        )

    def _to_record(self, row: asyncpg.Record) -> CatalogJobRecord:
        location = _decode_dict(row["location"])
        duration = _decode_dict(row["duration"])
        compensation = _decode_dict(row["compensation"])
        shift = _decode_dict(row["shift"])
        requirements = _decode_dict(row["requirements"])
        coordinates = location.get("coordinates")
        shift_type = shift.get("type")

        return CatalogJobRecord(
            upstream_id=str(row["upstream_id"]),
            title=str(row["title"]),
            specialty=str(row["specialty"]),
            facility_name=row["facility_name"],
            location=JobLocation(
                city=location.get("city"),
                state=location.get("state"),
                zip_code=location.get("zip_code"),
                coordinates=(
                    None
                    if not isinstance(coordinates, dict)
                    else Coordinates(
                        latitude=float(coordinates["latitude"]),
                        longitude=float(coordinates["longitude"]),
                    )
                ),
            ),
            duration=JobDuration(
                start_date=_parse_optional_datetime(duration.get("start_date")),
                end_date=_parse_optional_datetime(duration.get("end_date")),
                weekly_hours=duration.get("weekly_hours"),
            ),
            compensation=JobCompensation(
                pay_rate=compensation.get("pay_rate"),
                housing_stipend=compensation.get("housing_stipend"),
            ),
            shift=JobShift(
                type=None if shift_type is None else ShiftType(shift_type),
                hours=shift.get("hours"),
                pattern=shift.get("pattern"),
            ),
            requirements=JobRequirements(
                certifications=tuple(requirements.get("certifications", ())),
                min_experience_years=requirements.get("min_experience_years"),
                skills=tuple(requirements.get("skills", ())),
            ),
            status=JobStatus(str(row["status"])),
            is_featured=bool(row["is_featured"]),
            is_urgent=bool(row["is_urgent"]),
            source_updated_at=row["source_updated_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            metadata=_decode_dict(row["metadata"]),
        )


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except _UNAVAILABLE_ERRORS as exc:
        raise CatalogStoreUnavailableError(f"Catalog store unavailable ({action}): {exc}") from exc
    except asyncpg.PostgresError as exc:
        raise CatalogStoreError(f"Catalog store failed to {action}: {exc}") from exc


def _location_to_json(location: JobLocation) -> dict[str, Any]:
    coordinates = location.coordinates
    return {
        "city": location.city,
        "state": location.state,
        "zip_code": location.zip_code,
        "coordinates": (
            None
            if coordinates is None
            else {"latitude": coordinates.latitude, "longitude": coordinates.longitude}
        ),
    }


def _duration_to_json(duration: JobDuration) -> dict[str, Any]:
    return {
        "start_date": None if duration.start_date is None else duration.start_date.isoformat(),
        "end_date": None if duration.end_date is None else duration.end_date.isoformat(),
        "weekly_hours": duration.weekly_hours,
    }


def _compensation_to_json(compensation: JobCompensation) -> dict[str, Any]:
    return {
        "pay_rate": compensation.pay_rate,
        "housing_stipend": compensation.housing_stipend,
    }


def _shift_to_json(shift: JobShift) -> dict[str, Any]:
    return {
        "type": None if shift.type is None else shift.type.value,
        "hours": shift.hours,
        "pattern": shift.pattern,
    }


def _requirements_to_json(requirements: JobRequirements) -> dict[str, Any]:
    return {
        "certifications": list(requirements.certifications),
        "min_experience_years": requirements.min_experience_years,
        "skills": list(requirements.skills),
    }


def _decode_dict(value: object) -> dict[str, Any]:
    if value is None:
        return {}
    decoded = json.loads(value) if isinstance(value, str) else value
    if not isinstance(decoded, dict):
        raise TypeError(f"Expected JSON object column, got {type(decoded)!r}.")
    return decoded


def _parse_optional_datetime(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise TypeError(f"Expected ISO timestamp string, got {type(value)!r}.")


__all__ = ["PostgresCatalogStore"]
