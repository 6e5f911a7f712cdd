"""Main entry point for the redirector."""

import asyncio
import logging
import sys

from grtn.core.config import load_config
from grtn.core.service import Redirector


async def main() -> None:
    """Main entry point."""
    try:
        config = load_config()

        logger = logging.getLogger("grtn")
        redirector = Redirector(config)
        logger.info("Redirector initialized")

        await redirector.run_forever()

    except Exception as e:
        logger = logging.getLogger("grtn")
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
