from __future__ import annotations

import argparse
import logging
import time

from gardooner.config import load_config, setup_logging
from gardooner.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gardooner-scheduler",
        description="Run the daily garden analysis without starting the web server.",
    )
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Run one analysis pass immediately, drain the queue and exit",
    )
    parser.add_argument(
        "--time",
        dest="time_of_day",
        default=None,
        help="Override the daily UTC run time (HH:MM)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the AnalysisScheduler loop, or a single pass with ``--run-now``."""
    args = build_parser().parse_args(argv)

    config = load_config()
    if args.time_of_day:
        config.analysis_time_utc = args.time_of_day
    setup_logging(debug=config.DEBUG, log_dir=config.log_dir)

    container = ServiceContainer.build(config)

    if args.run_now:
        try:
            container.scheduler.run_now()
            failed = container.job_queue.failed
            if failed:
                logger.warning("%d job(s) failed permanently", len(failed))
                return 1
            return 0
        finally:
            container.shutdown()

    container.scheduler.start()
    logger.info("Scheduler running (press Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping scheduler...")
    finally:
        try:
            container.shutdown()
        except (RuntimeError, OSError):
            logger.exception("Failed to shut down scheduler cleanly")
            return 1
    return 0


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
