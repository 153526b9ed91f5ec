import asyncio
from loguru import logger

from noticesync.config.loader import AppConfig
from noticesync.orchestrator import EngineState, NoticeEngine
from noticesync.utils.logger import setup_logging


def log_state(state: EngineState):
    if state.refreshing:
        return

    unread = state.unread_count()
    status = f"📬 {len(state.notices)} notices, {unread} unread"
    if state.new_items_count:
        status += f", {state.new_items_count} new"
    if state.has_errors:
        status += f" | ⚠️ {', '.join(category.value for category in state.errors)} unavailable"
    logger.info(status)


async def main():
    """Main entry point"""
    config = AppConfig.load("config/")
    setup_logging(config.logging.get("level", "INFO"), config.logging.get("dir", "logs"))
    logger.info("🚀 Starting notice sync engine")

    engine = NoticeEngine(config)
    engine.subscribe(log_state)

    try:
        engine.start()
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Interrupted by user")
    finally:
        await engine.close()
        logger.info("✅ Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
