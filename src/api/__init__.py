"""
FastAPI service for claims and runtime configuration.

Provides REST API with:
- POST /claims - Claim submission with cooldown and threshold alerts
- GET/PUT /admin/config - Runtime polling intervals and alert settings
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
