import logging
import sys

import redis

from searchdemo.core.config import settings
from searchdemo.core.errors import SearchDemoError, classify_redis_error
from searchdemo.core.logging import setup_logging
from searchdemo.services.driver import DemoDriver
from searchdemo.services.search.client import SearchClient, open_connection

logger = logging.getLogger(__name__)


def run() -> None:
    with open_connection(settings.REDIS_URL, socket_timeout=settings.REDIS_SOCKET_TIMEOUT) as conn:
        DemoDriver(SearchClient(conn)).run()


def main() -> int:
    setup_logging()

    try:
        run()
    except (SearchDemoError, redis.RedisError) as e:
        err = classify_redis_error(e)
        logger.error("%s: %s", err.__class__.__name__, err)
        return err.exit_code
    except Exception:
        logger.exception("Unhandled error")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
