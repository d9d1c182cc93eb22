"""Configuration loading.

Config is loaded explicitly and passed to the daemon; there is no global
config object:

    from guildwatch.config import load_config
    config = load_config()
"""

from guildwatch.config.loader import load_config
from guildwatch.config.schema import GuildwatchConfig

__all__ = ["GuildwatchConfig", "load_config"]
