"""
Telegram bot integration for operator alerts.

send_message() raises on failure; TelegramNotifier wraps it so a broken
alert channel never fails the job that raised the alert.
"""

from typing import Optional
import requests
import structlog

from config.settings import Settings, get_settings

logger = structlog.get_logger(__name__)


class TelegramError(Exception):
    """Telegram API error."""
    pass


def get_telegram_config(settings: Optional[Settings] = None) -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    settings = settings or get_settings()
    bot_token = settings.telegram_bot_token
    chat_id = settings.telegram_chat_id

    if not bot_token or not chat_id:
        logger.warning(
            "telegram_not_configured",
            has_token=bool(bot_token),
            has_chat_id=bool(chat_id)
        )

    return bot_token, chat_id


def send_message(
    message: str,
    parse_mode: str = "Markdown",
    settings: Optional[Settings] = None,
) -> bool:
    """
    Send message to Telegram.

    Args:
        message: Message text to send
        parse_mode: Telegram parse mode (Markdown or HTML)
        settings: Settings override

    Returns:
        True if sent, False if Telegram is not configured

    Raises:
        TelegramError: If send fails
    """
    bot_token, chat_id = get_telegram_config(settings)

    if not bot_token or not chat_id:
        logger.warning("telegram_not_configured_skipping_send")
        return False

    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    try:
        logger.info("sending_telegram_message", chat_id=chat_id)

        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()

        result = response.json()

        if not result.get("ok"):
            error_msg = result.get("description", "Unknown error")
            logger.error("telegram_api_error", error=error_msg)
            raise TelegramError(f"Telegram API error: {error_msg}")

        logger.info("telegram_message_sent", message_id=result.get("result", {}).get("message_id"))
        return True

    except requests.exceptions.RequestException as e:
        logger.error("telegram_request_failed", error=str(e))
        raise TelegramError(f"Failed to send Telegram message: {str(e)}")


class TelegramNotifier:
    """Best-effort notifier used by the failsafe and the job runner."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def send(self, text: str) -> bool:
        try:
            return send_message(text, settings=self.settings)
        except TelegramError as e:
            logger.error("telegram_alert_dropped", error=str(e))
            return False
