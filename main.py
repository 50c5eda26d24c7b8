"""
Chain Gateway - Main Entry Point
Loads configuration, opens chain connections and reports their health
"""

import asyncio
import sys
from loguru import logger
from gateway.payment_gateway import PaymentGateway

# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level="INFO"
)
logger.add(
    "data/logs/gateway.log",
    rotation="1 day",
    retention="7 days",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    level="DEBUG"
)


async def main():
    """Main entry point"""
    logger.info("=" * 70)
    logger.info("Chain Gateway starting...")
    logger.info("=" * 70)

    gateway = PaymentGateway.from_config()
    info = gateway.provider_info()

    logger.info(f"Provider: {info['name']} v{info['version']} ({info['environment']})")

    if not info['supportedChains']:
        logger.warning("No chains configured, set at least one *_RPC variable in .env")
        return

    report = await gateway.check_connections()

    logger.info("\nConnection report:")
    for key, status in report.items():
        if not status['connected']:
            logger.error(f"  {status['name']}: unreachable ({status['error']})")
        elif not status['chainIdMatches']:
            logger.warning(
                f"  {status['name']}: chain id {status['chainId']}, "
                f"expected {status['expectedChainId']}"
            )
        else:
            logger.success(f"  {status['name']}: ok (chain id {status['chainId']})")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error in main: {e}", exc_info=True)
    finally:
        logger.info("Chain Gateway stopped")
