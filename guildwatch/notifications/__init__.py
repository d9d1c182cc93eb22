"""Notification delivery: the DM sender and the relay entry point."""

from .relay_link import LocalDelivery, RelayLink
from .sender import NotificationSender, format_notification

__all__ = ["LocalDelivery", "NotificationSender", "RelayLink", "format_notification"]
