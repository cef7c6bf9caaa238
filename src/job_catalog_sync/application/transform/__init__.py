"""Upstream-to-catalog record transformation."""

from job_catalog_sync.application.transform.extraction_rules import (
    extract_certifications,
    extract_min_experience_years,
    extract_shift,
    extract_skills,
)
from job_catalog_sync.application.transform.job_record_transformer import transform_job

__all__ = [
    "extract_certifications",
    "extract_min_experience_years",
    "extract_shift",
    "extract_skills",
    "transform_job",
]
