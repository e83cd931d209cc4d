"""Upstream fetch layer: HTTP transport, wire models and the typed client."""

from src.collector.client import StatusPageClient
from src.collector.config import CollectorConfig
from src.collector.http_client import (
    FetchError,
    HTTPClient,
    HTTPClientError,
    MalformedResponseError,
    RateLimitError,
    RetryConfig,
)
from src.collector.schemas import CLOUDFRONT_METRICS, MetricDefinition

__all__ = [
    "CLOUDFRONT_METRICS",
    "CollectorConfig",
    "FetchError",
    "HTTPClient",
    "HTTPClientError",
    "MalformedResponseError",
    "MetricDefinition",
    "RateLimitError",
    "RetryConfig",
    "StatusPageClient",
]
