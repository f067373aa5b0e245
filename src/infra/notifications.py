"""
Notification sinks for failed high-priority jobs.

- LoggingNotifier: writes the alert to the log (always available)
- WebhookNotifier: POSTs the alert to a webhook with retry and backoff;
  Discord webhook URLs get an embed payload

Alert delivery is best-effort: a sink never raises into the scheduler.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger(__name__)

# Webhook configuration
WEBHOOK_TIMEOUT_SECONDS = 30
WEBHOOK_MAX_RETRIES = 3
WEBHOOK_RETRY_BASE_DELAY = 1.0  # seconds
WEBHOOK_RETRY_MAX_DELAY = 10.0  # seconds

# Discord embed color for failures
DISCORD_COLOR_ERROR = 0xED4245


def is_discord_webhook_url(url: str) -> bool:
    """
    Check if URL is a Discord webhook URL.

    Args:
        url: Webhook URL to check

    Returns:
        True if URL matches Discord webhook pattern
    """
    if not url:
        return False
    discord_patterns = [
        "https://discord.com/api/webhooks/",
        "https://www.discord.com/api/webhooks/",
        "https://discordapp.com/api/webhooks/",
        "https://www.discordapp.com/api/webhooks/",
    ]
    return any(url.startswith(pattern) for pattern in discord_patterns)


def build_alert_payload(title: str, message: str) -> Dict[str, Any]:
    """Plain JSON alert payload."""
    return {
        "event": "alert",
        "title": title,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def build_discord_alert_payload(title: str, message: str) -> Dict[str, Any]:
    """Discord-compatible alert payload with one embed."""
    return {
        "embeds": [
            {
                "title": f"❌ {title}",
                "description": message[:2000],
                "color": DISCORD_COLOR_ERROR,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "footer": {"text": "Fixture Sync"},
            }
        ],
    }


class LoggingNotifier:
    """NotificationSink that only logs."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def alert(self, title: str, message: str) -> None:
        self.sent.append((title, message))
        logger.error(f"[ALERT] {title}: {message}")


class WebhookNotifier:
    """NotificationSink that POSTs alerts to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        max_retries: int = WEBHOOK_MAX_RETRIES,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self._http = http_client

    async def alert(self, title: str, message: str) -> None:
        logger.error(f"[ALERT] {title}: {message}")
        await self.send(title, message)

    async def send(self, title: str, message: str) -> tuple[bool, Optional[str]]:
        """
        Send the alert with retry logic.

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        is_discord = is_discord_webhook_url(self.url)
        if is_discord:
            payload = build_discord_alert_payload(title, message)
        else:
            payload = build_alert_payload(title, message)

        headers = {
            "Content-Type": "application/json",
            "User-Agent": "FixtureSync/1.0",
        }
        if not is_discord:
            headers["X-Webhook-Event"] = "alert"

        last_error: Optional[str] = None

        for attempt in range(self.max_retries):
            try:
                response = await self._post(payload, headers)

                if 200 <= response.status_code < 300:
                    logger.info(
                        f"Alert webhook sent to {self.url} "
                        f"(attempt {attempt + 1}/{self.max_retries}, status={response.status_code})"
                    )
                    return True, None

                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                logger.warning(
                    f"Alert webhook failed to {self.url} "
                    f"(attempt {attempt + 1}/{self.max_retries}): {last_error}"
                )

            except httpx.TimeoutException:
                last_error = f"Timeout after {self.timeout}s"
                logger.warning(
                    f"Alert webhook timeout to {self.url} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )

            except httpx.RequestError as e:
                last_error = f"Request error: {str(e)}"
                logger.warning(
                    f"Alert webhook request error to {self.url} "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e}"
                )

            # Exponential backoff before retry
            if attempt < self.max_retries - 1:
                delay = min(
                    WEBHOOK_RETRY_BASE_DELAY * (2 ** attempt),
                    WEBHOOK_RETRY_MAX_DELAY
                )
                await asyncio.sleep(delay)

        logger.error(
            f"Alert webhook failed after {self.max_retries} attempts to {self.url}: {last_error}"
        )
        return False, last_error

    async def _post(self, payload: dict, headers: dict) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(self.url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json=payload, headers=headers)


def create_notifier(webhook_url: Optional[str] = None):
    """WebhookNotifier when a URL is configured, LoggingNotifier otherwise."""
    if webhook_url:
        return WebhookNotifier(webhook_url)
    return LoggingNotifier()
