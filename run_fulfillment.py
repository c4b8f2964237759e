# run_fulfillment.py
"""
Cron entry point for the fulfillment pipeline.

    */5 8-22 * * *  python run_fulfillment.py
    */30 * * * *    python run_fulfillment.py --resume-stalled
"""
import argparse
import logging

from sqlmodel import Session

from app.core.config import get_settings
from app.core.dependencies import build_fulfillment_service
from app.database import create_db_and_tables, create_db_engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Process pending dropship orders.")
    parser.add_argument(
        "--resume-stalled",
        action="store_true",
        help="also resume orders an interrupted run left mid-pipeline",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    engine = create_db_engine(settings.DATABASE_URL)
    service = build_fulfillment_service(settings)

    try:
        create_db_and_tables(engine)
        with Session(engine) as session:
            summary = service.process_pending_orders(session)
            if args.resume_stalled:
                resumed = service.resume_stalled_orders(session)
                summary.interrupted += resumed.interrupted
    finally:
        engine.dispose()

    if summary.interrupted:
        logger.warning(f"{summary.interrupted} orders interrupted by store errors")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
