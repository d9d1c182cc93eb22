"""guildwatch - relay new-member events from watched Discord guilds to one recipient."""

__version__ = "1.0.0"
