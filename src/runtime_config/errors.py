"""Configuration errors for runtime values stored in ``bot_config``."""


class ConfigurationError(Exception):
    """A required runtime config value is missing or unparsable.

    Fatal at startup (poller intervals); logged-and-skipped when discovered
    during a single alert evaluation.
    """

    def __init__(self, key: str, value: str | None = None):
        if value is None:
            message = f"Missing config key: {key}"
        else:
            message = f"Invalid config value for {key}: {value!r}"
        super().__init__(message)
        self.key = key
        self.value = value
