# temp_file_manager.py
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .exceptions import CleanupWarning

logger = logging.getLogger(__name__)


class TempFileManager:
    """Tracks the files one job owns and deletes them on every exit path.

    One instance per job; nothing is shared between jobs.
    """

    def __init__(self, work_dir: Optional[Path] = None):
        self.work_dir = Path(work_dir) if work_dir is not None else None
        self._temp_files = []

    def register(self, file_path) -> Path:
        """Register a file owned by the job."""
        path = Path(file_path)
        if path not in self._temp_files:
            self._temp_files.append(path)
        return path

    def unregister(self, file_path):
        """Unregister a file (if it was handed off or already removed)."""
        try:
            self._temp_files.remove(Path(file_path))
        except ValueError:
            pass

    def release_all(self) -> List[Path]:
        """Transfer ownership of every registered file to the caller."""
        released = list(self._temp_files)
        self._temp_files.clear()
        return released

    def cleanup(self) -> List[CleanupWarning]:
        """Delete all registered files and the work directory once empty.

        Failures are logged and returned, never raised.
        """
        warnings = remove_files(self._temp_files)
        self._temp_files.clear()
        if self.work_dir is not None:
            warning = remove_empty_dir(self.work_dir)
            if warning is not None:
                warnings.append(warning)
        return warnings

    def get_temp_count(self) -> int:
        return len(self._temp_files)


def remove_files(paths: Iterable) -> List[CleanupWarning]:
    """Best-effort deletion of a set of files."""
    warnings = []
    for file_path in list(paths):
        path = Path(file_path)
        try:
            if path.exists():
                path.unlink()
                logger.debug(f"Cleaned up temporary file: {path}")
        except OSError as e:
            warning = CleanupWarning(path, str(e))
            logger.warning(str(warning))
            warnings.append(warning)
    return warnings


def remove_empty_dir(directory) -> Optional[CleanupWarning]:
    """Remove a job directory if nothing is left in it."""
    path = Path(directory)
    try:
        if path.is_dir() and not any(path.iterdir()):
            path.rmdir()
            logger.debug(f"Removed job directory: {path}")
    except OSError as e:
        warning = CleanupWarning(path, str(e))
        logger.warning(str(warning))
        return warning
    return None

