"""Upstream API adapters."""

from job_catalog_sync.infrastructure.upstream.client import UpstreamJobsClient
from job_catalog_sync.infrastructure.upstream.token_manager import (
    TokenManager,
    UpstreamCredentials,
)

__all__ = ["TokenManager", "UpstreamCredentials", "UpstreamJobsClient"]
