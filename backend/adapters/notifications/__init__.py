"""Notification adapters."""

from .slack_adapter import SlackNotifier, SlackResult, slack_notifier

__all__ = [
    "SlackNotifier",
    "SlackResult",
    "slack_notifier",
]
