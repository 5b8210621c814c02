"""
ApplyDesk - process entry point.

Usage:
    python main.py serve [port]   Run the API with uvicorn
    python main.py worker         Run the background queue worker
    python main.py init-db        Create tables without Alembic
"""

import logging
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

from applydesk.db import init_db
from applydesk.jobqueue.manager import QueueManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("applydesk")


def serve(port: int = 8000) -> None:
    import uvicorn

    uvicorn.run("applydesk.api.app:app", host="0.0.0.0", port=port)


def worker() -> None:
    manager = QueueManager()

    def shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        manager.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)
    manager.start()
    logger.info("Worker stopped")


def main() -> None:
    command = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if command == "serve":
        port = int(sys.argv[2]) if len(sys.argv) > 2 else 8000
        serve(port)
    elif command == "worker":
        worker()
    elif command == "init-db":
        init_db()
        print("Tables created")
    else:
        print(__doc__)
        sys.exit(1)


if __name__ == "__main__":
    main()
