import logging
import pathlib
import re
import time

from exam_synth.core.config import settings

logger = logging.getLogger(__name__)

# Only files the compiler writes: exam_<uuid4 hex>.<suffix>
SCRATCH_FILE_RE = re.compile(r"^exam_[0-9a-f]{32}\.[A-Za-z0-9]+$")


def cleanup_scratch(scratch_dir: str | pathlib.Path | None = None) -> int:
    """Remove compiler scratch files older than cleanup_ttl. Returns the number removed."""
    directory = pathlib.Path(scratch_dir) if scratch_dir is not None else settings.scratch_dir
    removed = 0
    for item in directory.glob("exam_*"):
        if not SCRATCH_FILE_RE.match(item.name):
            continue
        try:
            if item.is_file() and time.time() - item.stat().st_mtime > settings.cleanup_ttl:
                logger.info(f"Attempting to remove old scratch file: {item}")
                item.unlink()
                removed += 1
        except FileNotFoundError:
            logger.warning(f"Scratch file not found during cleanup (possibly already deleted): {item}")
        except OSError as e:
            logger.error(f"Error removing scratch file {item}: {e}")
    return removed
