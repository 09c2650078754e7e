"""Factory pattern for creating notifier instances."""

import logging

from app.adapters.notifier.base import AbstractNotifier, NullNotifier
from app.adapters.notifier.resend_client import ResendNotifier
from app.core.config import NotifierSettings

logger = logging.getLogger(__name__)


def create_notifier(notifier_settings: NotifierSettings) -> AbstractNotifier:
    """Instantiate the notifier selected by ``NOTIFIER_PROVIDER``.

    A provider that is selected but missing credentials degrades to the
    null notifier with a warning; signups must not depend on email.

    Raises:
        ValueError: If the provider name is unknown.
    """
    provider = notifier_settings.provider.lower()

    if provider == "none":
        return NullNotifier()

    if provider == "resend":
        if not notifier_settings.api_key or not notifier_settings.from_email:
            logger.warning(
                "notifier.not_configured",
                extra={"provider": provider, "reason": "missing_api_key_or_from_email"},
            )
            return NullNotifier()
        return ResendNotifier(
            api_key=notifier_settings.api_key,
            from_email=notifier_settings.from_email,
            reply_to_email=notifier_settings.reply_to_email,
            base_url=notifier_settings.base_url,
            timeout_seconds=notifier_settings.timeout_seconds,
            product_name=notifier_settings.product_name,
            site_url=notifier_settings.site_url,
        )

    raise ValueError(f"Unknown notifier provider: '{provider}'. Supported providers: resend, none")
