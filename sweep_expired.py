"""Run one expiration sweep outside the API process.

For schedulers that start a fresh process per tick (cron, a container job)
or call a function (`handler(event, context)`). It uses the same
configuration as the API (`DATABASE_DIR`, object store settings) and the same
sweep, so it can overlap safely with the API's own in-process sweeper.

Run: set the environment variables (or a `.env` file) and run
      `python sweep_expired.py`.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from services.factory import build_engine
from utils.config import AppConfig

logger = logging.getLogger(__name__)


async def run_sweep(config: Optional[AppConfig] = None) -> Dict[str, Any]:
    """Build an engine from configuration, sweep once, and return the summary."""
    config = config or AppConfig.from_env()
    engine = build_engine(config)
    logger.info("Starting expired images check")
    report = await engine.sweep_expired()
    return {"message": "Expired images check completed successfully", **report.to_dict()}


def handler(event: Any = None, context: Any = None) -> Dict[str, Any]:
    """Function-style entry point returning a status code and a JSON body."""
    try:
        body = asyncio.run(run_sweep())
        status = 200
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.exception("Error checking for expired images")
        body = {
            "message": "Error checking for expired images",
            "error": str(exc),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        status = 500
    return {"statusCode": status, "body": json.dumps(body)}


def main() -> int:
    load_dotenv()
    config = AppConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print(json.dumps(asyncio.run(run_sweep(config)), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
