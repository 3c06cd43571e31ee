"""
Tests for webhook alert delivery.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests

from mnav_pilot.config import AlertSettings
from mnav_pilot.models import Alert, AlertSeverity
from mnav_pilot.notify import WebhookNotifier


URL = "https://hooks.example.com/drift"


def make_alerts(as_of) -> list[Alert]:
    return [
        Alert(
            id="BTC-1",
            symbol="BTC",
            severity=AlertSeverity.CRITICAL,
            drift=Decimal("0.36"),
            timestamp=as_of,
        ),
        Alert(
            id="MSTR-1",
            symbol="MSTR",
            severity=AlertSeverity.WARNING,
            drift=Decimal("-0.06"),
            timestamp=as_of,
        ),
    ]


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    def test_inactive_without_url(self, as_of):
        notifier = WebhookNotifier.from_settings(AlertSettings(enabled=True))

        with patch("requests.post") as mock_post:
            assert not notifier.notify(make_alerts(as_of))
            mock_post.assert_not_called()

    def test_inactive_when_disabled(self, as_of):
        notifier = WebhookNotifier(URL, enabled=False)
        with patch("requests.post") as mock_post:
            assert not notifier.notify(make_alerts(as_of))
            mock_post.assert_not_called()

    def test_nothing_to_send(self):
        notifier = WebhookNotifier(URL)
        with patch("requests.post") as mock_post:
            assert not notifier.notify([])
            mock_post.assert_not_called()

    def test_posts_payload(self, as_of):
        notifier = WebhookNotifier(URL)
        with patch("requests.post") as mock_post:
            mock_post.return_value = MagicMock()

            assert notifier.notify(make_alerts(as_of))

        args, kwargs = mock_post.call_args
        assert args[0] == URL
        payload = kwargs["json"]
        assert payload["text"].splitlines() == [
            "CRITICAL: BTC overweight by 36.0%",
            "WARNING: MSTR underweight by 6.0%",
        ]
        assert [a["id"] for a in payload["alerts"]] == ["BTC-1", "MSTR-1"]

    def test_delivery_failure_is_reported(self, as_of):
        notifier = WebhookNotifier(URL)
        with patch("requests.post", side_effect=requests.exceptions.ConnectionError()):
            assert not notifier.notify(make_alerts(as_of))
