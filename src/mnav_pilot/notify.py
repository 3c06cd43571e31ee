"""
Webhook delivery of newly raised drift alerts.

Only alerts emitted by a drift check are sent; alerts held back by the
cooldown never reach the notifier.
"""

import logging
from typing import Iterable, Optional

import requests

from mnav_pilot.config import AlertSettings
from mnav_pilot.models import Alert


logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Posts alerts as JSON to a webhook URL."""

    def __init__(
        self,
        url: Optional[str],
        enabled: bool = True,
        timeout: float = 10.0,
    ):
        self.url = url
        self.enabled = enabled
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: AlertSettings) -> "WebhookNotifier":
        return cls(url=settings.webhook, enabled=settings.enabled)

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.url)

    def build_payload(self, alerts: list[Alert]) -> dict:
        lines = [
            f"{a.severity.value.upper()}: {a.symbol} "
            f"{'over' if a.drift > 0 else 'under'}weight by {abs(a.drift) * 100:.1f}%"
            for a in alerts
        ]
        return {
            "text": "\n".join(lines),
            "alerts": [a.to_dict() for a in alerts],
        }

    def notify(self, alerts: Iterable[Alert]) -> bool:
        """
        Send alerts to the webhook.

        Delivery failures are logged and reported through the return value;
        they never interrupt the drift check that produced the alerts.

        Args:
            alerts: Newly emitted alerts

        Returns:
            True if a request was sent and accepted
        """
        alerts = list(alerts)
        if not alerts or not self.active:
            return False

        try:
            response = requests.post(
                self.url, json=self.build_payload(alerts), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Webhook delivery failed: %s", e)
            return False

        logger.info("Delivered %d alert(s) to webhook", len(alerts))
        return True
