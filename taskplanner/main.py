"""Taskplanner entry point — rebuild one user's schedule."""

import asyncio
import logging
import sys

from taskplanner.config import settings
from taskplanner.scheduler import SchedulerError, reschedule_all_tasks

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Reschedule the user named on the command line, or DEFAULT_USER_ID."""
    user_id = sys.argv[1] if len(sys.argv) > 1 else settings.default_user_id
    if not user_id:
        logger.error("No user given and DEFAULT_USER_ID is empty")
        sys.exit(2)

    logger.info("Rescheduling tasks for user %s...", user_id)
    try:
        result = asyncio.run(reschedule_all_tasks(user_id))
    except SchedulerError:
        sys.exit(1)

    for segment in result.segments:
        logger.info(
            "%s  %3d min  %-15s task=%s",
            segment.start_time.isoformat(),
            segment.duration_minutes,
            segment.status,
            segment.task_id,
        )


if __name__ == "__main__":
    main()
