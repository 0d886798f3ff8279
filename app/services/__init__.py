from .formatter import build_message
from .slack_notifier import DeliveryError, SlackNotifier

__all__ = [
    "build_message",
    "DeliveryError",
    "SlackNotifier",
]
