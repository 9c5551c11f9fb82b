"""
File operation utilities
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)

def get_image_files(directory: str,
                    extensions: Iterable[str],
                    recursive: bool = True) -> List[str]:
    """
    Get all image files in directory, sorted by path.

    Extensions match case-insensitively. Symlinked files are left out so the
    same image is never reached under two names. Sub-directories that cannot
    be read are logged and skipped.
    """
    wanted = {ext.lower() for ext in extensions}
    image_files = []

    def on_error(err: OSError):
        logger.warning("Cannot read directory %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(directory, onerror=on_error):
        dirnames.sort()
        for name in filenames:
            path = os.path.join(dirpath, name)
            if os.path.splitext(name)[1].lower() in wanted and not os.path.islink(path):
                image_files.append(path)
        if not recursive:
            break

    return sorted(image_files)

def get_total_size(paths: Iterable[str]) -> int:
    """Sum of file sizes, ignoring files that vanished"""
    total = 0
    for path in paths:
        try:
            total += Path(path).stat().st_size
        except OSError:
            continue
    return total

def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"
