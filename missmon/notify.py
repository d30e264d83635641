from __future__ import annotations

from typing import Optional

import requests

from .constants import ALERT_TEMPLATE, SYSTEM_NAME, TELEGRAM_API


class NotifyError(RuntimeError):
    """An alert could not be delivered."""


def format_alert(miss_difference: int) -> str:
    """Render the operator-facing alert text."""
    return ALERT_TEMPLATE.format(system=SYSTEM_NAME, miss_difference=miss_difference)


class TelegramNotifier:
    """Delivers alerts to a Telegram chat through the Bot API.

    Sending is synchronous: the monitor loop waits for delivery, and failures
    are raised as NotifyError so the loop can report them."""
    def __init__(
        self,
        bot_id: str,
        token: str,
        chat_id: str,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self._url = TELEGRAM_API.format(bot_id=bot_id, token=token)
        self._chat_id = chat_id
        self._timeout = timeout_s
        self._session = session or requests.Session()

    def send(self, text: str):
        try:
            resp = self._session.post(
                self._url,
                data={"chat_id": self._chat_id, "text": text},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            # Exception text from requests can embed the URL (and so the token).
            raise NotifyError(f"telegram request failed: {type(e).__name__}") from None
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code >= 400 or not body.get("ok", False):
            desc = body.get("description") or resp.reason or "unknown error"
            raise NotifyError(f"telegram rejected message (HTTP {resp.status_code}): {desc}")


class LogNotifier:
    """Dry-run channel: records alerts in the log instead of delivering them."""
    def __init__(self, logger):
        self.logger = logger

    def send(self, text: str):
        self.logger.emit("alert_dry_run", text=text)
