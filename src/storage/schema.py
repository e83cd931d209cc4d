"""
Database schema for status-pulse.

Idempotent DDL executed by ``status-pulse init-db``. The unique constraints
declared here are load-bearing: metric/status/component dedup, the claim
arbitration ordering, and the delivery-receipt at-most-once guarantee all
rely on them.
"""

import logging

from src.storage.database import Database

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- Key/value runtime configuration (poller intervals, alert threshold/window)
CREATE TABLE IF NOT EXISTS bot_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Subscribers: scoped (guild + destination channel) and direct (user)
CREATE TABLE IF NOT EXISTS guild_configs (
    guild_id TEXT PRIMARY KEY,
    channel_id TEXT,
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS user_configs (
    user_id TEXT PRIMARY KEY,
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Claims (user reports)
CREATE TABLE IF NOT EXISTS claims (
    id BIGSERIAL PRIMARY KEY,
    actor_id TEXT NOT NULL,
    scope_id TEXT,
    category TEXT NOT NULL,
    content TEXT,
    state TEXT NOT NULL DEFAULT 'active',
    created_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_claims_actor_created
    ON claims(actor_id, created_at);
CREATE INDEX IF NOT EXISTS idx_claims_category_created
    ON claims(category, created_at);

-- Upstream status history
CREATE TABLE IF NOT EXISTS status_logs (
    id BIGSERIAL PRIMARY KEY,
    indicator TEXT NOT NULL,
    description TEXT NOT NULL,
    source_timestamp TIMESTAMPTZ NOT NULL UNIQUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS component_logs (
    id BIGSERIAL PRIMARY KEY,
    component_id TEXT NOT NULL,
    name TEXT NOT NULL,
    status TEXT NOT NULL,
    source_timestamp TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (component_id, source_timestamp)
);

CREATE TABLE IF NOT EXISTS incidents (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    impact TEXT NOT NULL,
    status TEXT NOT NULL,
    started_at TIMESTAMPTZ NOT NULL,
    resolved_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_incidents_status
    ON incidents(status);

CREATE TABLE IF NOT EXISTS incident_updates (
    id TEXT PRIMARY KEY,
    incident_id TEXT NOT NULL REFERENCES incidents(id) ON DELETE CASCADE,
    body TEXT NOT NULL,
    status TEXT NOT NULL,
    published_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS maintenances (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    status TEXT NOT NULL,
    scheduled_for TIMESTAMPTZ NOT NULL,
    scheduled_until TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_maintenances_status
    ON maintenances(status);

CREATE TABLE IF NOT EXISTS metric_logs (
    id BIGSERIAL PRIMARY KEY,
    metric_name TEXT NOT NULL,
    value DOUBLE PRECISION NOT NULL,
    unit TEXT NOT NULL,
    interval_sec INTEGER NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (metric_name, timestamp)
);

-- Delivery receipts: existence of a row is the at-most-once reservation
CREATE TABLE IF NOT EXISTS delivery_receipts (
    id BIGSERIAL PRIMARY KEY,
    subscriber_kind TEXT NOT NULL,
    subscriber_id TEXT NOT NULL,
    alert_type TEXT NOT NULL DEFAULT 'threshold',
    category TEXT NOT NULL,
    dedup_reference TEXT NOT NULL,
    notified_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (subscriber_kind, subscriber_id, category, dedup_reference)
);
"""


async def create_tables(database: Database) -> None:
    """Create every table and index if missing, in one transaction."""
    async with database.transaction() as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Database schema ensured")
