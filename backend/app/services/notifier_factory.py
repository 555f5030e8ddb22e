"""
Notifier factory.
Configures which notification channel to use.
"""

from app.core.config import get_settings
from app.services.interfaces.log_notifier import LogNotifier
from app.services.interfaces.notifier import Notifier
from app.services.webhook_notifier import WebhookNotifier


def get_notifier_strategy() -> Notifier:
    """
    Webhook delivery when NOTIFY_WEBHOOK_URL is set, otherwise log only.
    """
    settings = get_settings()
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(settings.NOTIFY_WEBHOOK_URL)
    return LogNotifier()


# Singleton instance
_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = get_notifier_strategy()
    return _notifier
