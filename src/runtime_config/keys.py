"""Well-known ``bot_config`` keys and their seed values."""

POLLING_STATUS = "polling.status"
POLLING_INCIDENT = "polling.incident"
POLLING_MAINTENANCE = "polling.maintenance"
POLLING_METRICS = "polling.metrics"

# Distinct actors needed within the window to fire an alert
REPORT_THRESHOLD = "report_threshold"
# Aggregation window in minutes
REPORT_INTERVAL = "report_interval"

DEFAULT_VALUES: dict[str, str] = {
    POLLING_STATUS: "60",
    POLLING_INCIDENT: "60",
    POLLING_MAINTENANCE: "60",
    POLLING_METRICS: "60",
    REPORT_THRESHOLD: "1",
    REPORT_INTERVAL: "60",
}
