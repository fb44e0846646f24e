"""Notificación de matches al usuario."""

from immoalert.notifications.dispatcher import NotificationDispatcher, NotificationOutcome

__all__ = ["NotificationDispatcher", "NotificationOutcome"]
