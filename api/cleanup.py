# Entry point for a scheduled serverless cleanup job.
# It imports the actual cleanup logic from the core application module.
import logging

from exam_synth.core.cleanup import cleanup_scratch

logger = logging.getLogger(__name__)


def handler(event, context):
    """Scheduled cleanup function to delete stale compiler scratch files."""
    logger.info("Cleanup cron job invoked.")
    removed = cleanup_scratch()
    logger.info("Cleanup cron job finished, %d file(s) removed.", removed)
    return {"status": "success", "removed": removed}


if __name__ == "__main__":
    cleanup_scratch()
