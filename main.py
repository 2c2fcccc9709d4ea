"""
SURGE WATCH — Main Entry Point
  python main.py [monitor]     seed baselines, then poll every 5 minutes forever
  python main.py api           serve the HTTP trigger (and scheduler) with uvicorn
  python main.py test-telegram send a test message and exit
"""
import argparse
import asyncio
import sys

import uvicorn
from surge_watch.config.settings import get_settings
from surge_watch.data.adapters.binance_adapter import BinanceFuturesAdapter
from surge_watch.engines.detection_engine import DetectionEngine, BaselineSeedError
from surge_watch.engines.scheduler import PollScheduler
from surge_watch.telegram.notifier import TelegramNotifier
from surge_watch.utils.logger import setup_logging, get_logger

logger = get_logger("main")


async def run_monitor() -> int:
    """Continuous poller. Returns a process exit code."""
    settings = get_settings()
    provider = BinanceFuturesAdapter(settings.data)
    notifier = TelegramNotifier(settings.telegram, settings.proxy)
    engine = DetectionEngine(provider, notifier.send_alert, settings=settings.monitor)
    scheduler = PollScheduler(engine, settings.monitor)

    await provider.connect()
    await notifier.initialize()
    try:
        try:
            seeded = await engine.initialize_baseline()
        except BaselineSeedError as e:
            logger.error("startup_failed", error=str(e))
            return 1
        logger.info("monitoring_started", symbols=seeded,
                    min_quote_volume=settings.monitor.min_quote_volume)
        await scheduler.start()
    finally:
        await scheduler.stop()
        await provider.disconnect()
        await notifier.shutdown()
    return 0


async def run_telegram_test() -> int:
    settings = get_settings()
    notifier = TelegramNotifier(settings.telegram, settings.proxy)
    try:
        ok = await notifier.send_test_message()
    finally:
        await notifier.shutdown()
    return 0 if ok else 1


def run_api():
    """Run the FastAPI application."""
    settings = get_settings()
    logger.info("starting_surge_watch", version=settings.version, port=settings.port)
    uvicorn.run(
        "surge_watch.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Binance futures volume surge monitor")
    parser.add_argument("command", nargs="?", default="monitor",
                        choices=["monitor", "api", "test-telegram"])
    args = parser.parse_args(argv)

    setup_logging()
    if args.command == "api":
        run_api()
        return 0
    if args.command == "test-telegram":
        return asyncio.run(run_telegram_test())
    try:
        return asyncio.run(run_monitor())
    except KeyboardInterrupt:
        logger.info("monitoring_interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
