# core/pipeline.py

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional

from imgdedup.config import DedupConfig
from imgdedup.core.duplicate_index import DuplicateIndex
from imgdedup.core.models import ResolutionMode, ScanSummary
from imgdedup.core.resolution import FileOperations, ResolutionPolicy
from imgdedup.core.work_distributor import FingerprintFunc, WorkDistributor
from imgdedup.security.input_validation import SecurityValidator
from imgdedup.utils.file_utils import format_file_size, get_image_files, get_total_size

logger = logging.getLogger(__name__)


class DeduplicationPipeline:
    """
    Scan a directory tree, group images by perceptual hash and resolve
    every duplicate group.

    Stages:
        1. enumerate candidate images under the root
        2. hash them on `config.threads` workers into a DuplicateIndex
        3. drain groups of two or more
        4. resolve each group with the configured policy
    """

    def __init__(self,
                 config: DedupConfig,
                 file_ops: Optional[FileOperations] = None,
                 fingerprint_func: Optional[FingerprintFunc] = None,
                 stop_event: Optional[threading.Event] = None):
        self.config = config.validate()
        self.file_ops = file_ops
        self.fingerprint_func = fingerprint_func
        self.stop_event = stop_event or threading.Event()

    def stop(self):
        """Ask workers to finish their current file and halt"""
        self.stop_event.set()

    def run(self, root: str) -> ScanSummary:
        started = time.monotonic()
        config = self.config

        # Everything that can be fatal happens before the first file is read
        root_path = SecurityValidator.validate_root(root)
        destination = None
        if config.mode is ResolutionMode.KEEP:
            destination = SecurityValidator.validate_destination(
                config.keep, root_path, create=not config.dry_run
            )

        policy = ResolutionPolicy(config.mode,
                                  destination=str(destination) if destination else None,
                                  file_ops=self.file_ops,
                                  dry_run=config.dry_run)

        summary = ScanSummary(mode=config.mode)

        image_paths = self._enumerate(root_path, destination)
        summary.files_found = len(image_paths)
        logger.info("Found %d images (%s) under %s", len(image_paths),
                    format_file_size(get_total_size(image_paths)), root_path)

        index = DuplicateIndex(shards=config.bucket_shards)
        distributor = WorkDistributor(threads=config.threads,
                                      fingerprint_func=self.fingerprint_func,
                                      hash_size=config.hash_size,
                                      show_progress=config.show_progress)
        scan = distributor.distribute(image_paths, index, stop_event=self.stop_event)

        summary.files_scanned = scan.processed
        summary.bytes_scanned = scan.bytes_read
        summary.scan_errors = scan.skipped

        if scan.cancelled:
            # Partial index: nothing is resolved, nothing is touched
            summary.cancelled = True
            summary.elapsed_seconds = time.monotonic() - started
            logger.warning("Scan cancelled; duplicates left unresolved")
            return summary

        groups = index.drain_groups()
        summary.duplicate_groups = len(groups)
        summary.duplicate_files = sum(len(g) - 1 for g in groups)
        logger.info("%d duplicate groups, %d redundant files",
                    summary.duplicate_groups, summary.duplicate_files)

        for group in groups:
            logger.debug("Resolving group %s (%d members)", group.fingerprint, len(group))
            outcome = policy.resolve(group)
            summary.outcomes.append(outcome)
            summary.actions_taken += outcome.succeeded

        summary.elapsed_seconds = time.monotonic() - started
        return summary

    def _enumerate(self, root: Path, destination: Optional[Path]) -> List[str]:
        paths = get_image_files(str(root), self.config.image_extensions)
        if destination is not None and destination.is_relative_to(root):
            paths = [p for p in paths if not Path(p).is_relative_to(destination)]
        return paths
