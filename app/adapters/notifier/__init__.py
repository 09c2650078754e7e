"""Confirmation notifier adapters."""

from app.adapters.notifier.base import AbstractNotifier, NotificationRequest, NotificationResult

__all__ = ["AbstractNotifier", "NotificationRequest", "NotificationResult"]
