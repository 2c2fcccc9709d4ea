"""
SURGE WATCH — Telegram Notifier
Best-effort delivery of volume surge alerts, optionally through an HTTP proxy.
"""
from typing import Optional, Dict, Any
from datetime import datetime, timezone

from telegram import Bot
from telegram.error import TelegramError, TimedOut
from telegram.request import HTTPXRequest

from surge_watch.config.settings import TelegramSettings, ProxySettings, get_settings
from surge_watch.utils.logger import get_logger

logger = get_logger("telegram_notifier")


def format_alert_message(symbol: str, price: str, price_change: str,
                         volume_ratio: str, quote_volume: str) -> str:
    """Plain-text surge alert body."""
    return (
        f"🚨 Volume Surge Alert\n"
        f"\n"
        f"Symbol: {symbol}\n"
        f"Price: {price}\n"
        f"Price change: {price_change}%\n"
        f"Volume change: {volume_ratio}x\n"
        f"Quote volume: {quote_volume} USDT"
    )


class TelegramNotifier:
    """
    Alert sink backed by python-telegram-bot.
    Never raises on delivery problems: failures are logged with enough
    context to debug the configuration and reported as False.
    """

    def __init__(self, settings: Optional[TelegramSettings] = None,
                 proxy: Optional[ProxySettings] = None):
        self.settings = settings or get_settings().telegram
        self.proxy = proxy or get_settings().proxy
        self._message_count = 0
        self._failure_count = 0
        self._initialized = False
        self._bot = None

    async def initialize(self) -> None:
        """Create the bot, routed through the proxy when one is enabled."""
        if not self.settings.bot_token:
            logger.warning("telegram_no_token", msg="Bot token not configured")
            return

        request = None
        if self.proxy.use:
            request = HTTPXRequest(proxy=self.proxy.url)
            logger.info("telegram_using_proxy", proxy=self.proxy.url)

        self._bot = Bot(token=self.settings.bot_token, request=request)
        self._initialized = True
        logger.info("telegram_initialized")

    async def shutdown(self) -> None:
        if self._bot:
            try:
                await self._bot.shutdown()
            except TelegramError as e:
                logger.warning("telegram_shutdown_error", error=str(e))
        self._initialized = False

    def _config_summary(self) -> Dict[str, Any]:
        # never log the token itself
        return {
            "bot_token": "set" if self.settings.bot_token else "missing",
            "chat_id": self.settings.chat_id or "missing",
        }

    async def send_alert(self, symbol: str, price: str, price_change: str,
                         volume_ratio: str, quote_volume: str) -> bool:
        """Deliver one surge alert. Returns True when Telegram accepted it."""
        message = format_alert_message(symbol, price, price_change, volume_ratio, quote_volume)

        if not self._initialized:
            await self.initialize()

        if not self._bot or not self.settings.chat_id:
            self._failure_count += 1
            logger.error("telegram_send_failed", symbol=symbol, error="telegram not configured",
                         message=message, config=self._config_summary())
            return False

        try:
            await self._bot.send_message(chat_id=self.settings.chat_id, text=message)
        except Exception as e:
            self._failure_count += 1
            logger.error("telegram_send_failed", symbol=symbol, error=str(e),
                         error_type=type(e).__name__, message=message,
                         config=self._config_summary())
            return False

        self._message_count += 1
        logger.info("telegram_sent", symbol=symbol, total_sent=self._message_count)
        return True

    async def send_test_message(self) -> bool:
        """Connectivity check for the bot token, chat id and proxy."""
        message = (
            f"🤖 Test message\n"
            f"Time: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC\n"
            f"If you can read this, the Telegram bot is configured correctly."
        )

        if not self._initialized:
            await self.initialize()
        if not self._bot or not self.settings.chat_id:
            logger.error("telegram_test_failed", error="telegram not configured",
                         config=self._config_summary())
            return False

        try:
            await self._bot.send_message(chat_id=self.settings.chat_id, text=message)
        except TimedOut:
            # the request may have reached Telegram before the connection dropped
            logger.warning("telegram_test_timed_out", msg="message may have been delivered")
            return True
        except TelegramError as e:
            logger.error("telegram_test_failed", error=str(e), config=self._config_summary())
            return False

        logger.info("telegram_test_sent")
        return True

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "messages_sent": self._message_count,
            "messages_failed": self._failure_count,
            "proxy_enabled": self.proxy.use,
        }
