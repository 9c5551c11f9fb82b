# core/resolution.py

import logging
import os
import shutil
import threading
from pathlib import Path
from typing import Optional

from imgdedup.core.exceptions import ConfigError, FileSystemError
from imgdedup.core.models import (
    ActionTaken,
    DuplicateGroup,
    ImageRecord,
    PathError,
    ResolutionMode,
    ResolutionOutcome,
)

logger = logging.getLogger(__name__)


class FileOperations:
    """
    The only place the engine touches files during resolution.

    Implementations raise FileSystemError for a failed path.
    """

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def same_file(self, first: str, second: str) -> bool:
        return first == second

    def remove_path(self, path: str):
        raise NotImplementedError

    def copy_file(self, source: str, destination: str):
        raise NotImplementedError


class LocalFileOperations(FileOperations):
    """FileOperations backed by the real filesystem"""

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def same_file(self, first: str, second: str) -> bool:
        """True when both paths reach one inode (symlink or hard link)"""
        try:
            return os.path.samefile(first, second)
        except OSError:
            return False

    def remove_path(self, path: str):
        try:
            os.remove(path)
        except OSError as e:
            raise FileSystemError(path, e) from e

    def copy_file(self, source: str, destination: str):
        try:
            src = open(source, 'rb')
        except OSError as e:
            raise FileSystemError(source, e) from e

        with src:
            try:
                # Exclusive create: never clobber a file that appeared meanwhile
                with open(destination, 'xb') as dst:
                    shutil.copyfileobj(src, dst)
                shutil.copystat(source, destination)
            except OSError as e:
                if not isinstance(e, FileExistsError) and os.path.exists(destination):
                    os.remove(destination)
                raise FileSystemError(destination, e) from e


def select_survivor(group: DuplicateGroup) -> ImageRecord:
    """Lowest (order_key, path) wins; independent of insertion order"""
    return min(group.records, key=lambda r: r.sort_key)


def unique_destination(directory: Path, filename: str, file_ops: FileOperations) -> Path:
    """First free name among `name.ext`, `name_1.ext`, `name_2.ext`, ..."""
    candidate = directory / filename
    stem, suffix = os.path.splitext(filename)
    n = 1
    while file_ops.exists(str(candidate)):
        candidate = directory / f"{stem}_{n}{suffix}"
        n += 1
    return candidate


class ResolutionPolicy:
    """
    Apply delete-or-copy semantics to duplicate groups.

    DELETE removes every member but the survivor. KEEP copies the survivor
    into `destination` and never touches the source tree. Per-path failures
    are recorded on the outcome and do not stop the remaining paths.
    """

    def __init__(self,
                 mode: ResolutionMode,
                 destination: Optional[str] = None,
                 file_ops: Optional[FileOperations] = None,
                 dry_run: bool = False):
        if mode is ResolutionMode.KEEP and not destination:
            raise ConfigError("keep mode requires a destination directory")
        self.mode = mode
        self.destination = Path(destination) if destination else None
        self.file_ops = file_ops or LocalFileOperations()
        self.dry_run = dry_run
        # Serializes name selection + write in the destination directory
        self._destination_lock = threading.Lock()
        # Names handed out during a dry run, which never reach the disk
        self._reserved = set()

    def resolve(self, group: DuplicateGroup) -> ResolutionOutcome:
        survivor = select_survivor(group)
        if self.mode is ResolutionMode.DELETE:
            return self._delete_others(group, survivor)
        return self._copy_survivor(survivor)

    def _delete_others(self, group: DuplicateGroup,
                       survivor: ImageRecord) -> ResolutionOutcome:
        outcome = ResolutionOutcome(survivor=survivor.path,
                                    action_taken=ActionTaken.DELETED,
                                    dry_run=self.dry_run)

        for record in group.records:
            if record.path == survivor.path:
                continue
            if self.file_ops.same_file(record.path, survivor.path):
                # Unlinking it would take the survivor's data with it
                logger.warning("Not deleting %s: same file as survivor %s",
                               record.path, survivor.path)
                continue
            if self.dry_run:
                logger.info("[dry run] would delete %s (kept %s)",
                            record.path, survivor.path)
                outcome.removed_or_copied.append(record.path)
                continue
            try:
                self.file_ops.remove_path(record.path)
            except FileSystemError as e:
                logger.error("Could not delete %s: %s", record.path, e)
                outcome.errors.append(PathError(record.path, str(e)))
                continue
            logger.info("Deleted %s (kept %s)", record.path, survivor.path)
            outcome.removed_or_copied.append(record.path)

        return outcome

    def _copy_survivor(self, survivor: ImageRecord) -> ResolutionOutcome:
        outcome = ResolutionOutcome(survivor=survivor.path,
                                    action_taken=ActionTaken.COPIED,
                                    dry_run=self.dry_run)
        filename = Path(survivor.path).name

        with self._destination_lock:
            target = unique_destination(self.destination, filename,
                                        _ReservingOps(self.file_ops, self._reserved))
            if self.dry_run:
                self._reserved.add(str(target))
                logger.info("[dry run] would copy %s -> %s", survivor.path, target)
            else:
                try:
                    self.file_ops.copy_file(survivor.path, str(target))
                except FileSystemError as e:
                    logger.error("Could not copy %s: %s", survivor.path, e)
                    outcome.errors.append(PathError(survivor.path, str(e)))
                    return outcome
                logger.info("Copied %s -> %s", survivor.path, target)

        outcome.removed_or_copied.append(survivor.path)
        outcome.destination = str(target)
        return outcome


class _ReservingOps(FileOperations):
    """Treats dry-run reservations as existing files"""

    def __init__(self, inner: FileOperations, reserved: set):
        self.inner = inner
        self.reserved = reserved

    def exists(self, path: str) -> bool:
        return path in self.reserved or self.inner.exists(path)
