"""Process-level services that wire the feature packages together."""

from src.services.collector_service import CollectorService

__all__ = ["CollectorService"]
