"""Runtime configuration stored in ``bot_config``.

``RuntimeConfigService`` lives in ``src.runtime_config.service``; it is
kept out of this namespace because it depends on the scheduler, which
reads keys from here.
"""

from src.runtime_config import keys
from src.runtime_config.errors import ConfigurationError
from src.runtime_config.repository import ConfigRepository

__all__ = ["ConfigRepository", "ConfigurationError", "keys"]
