# core/work_distributor.py

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from imgdedup.core.duplicate_index import DuplicateIndex
from imgdedup.core.exceptions import DecodeError, HashError
from imgdedup.core.fingerprint import DEFAULT_HASH_SIZE, compute_fingerprint
from imgdedup.core.models import Fingerprint, ImageRecord, ScanResult, SkipNotice

logger = logging.getLogger(__name__)

FingerprintFunc = Callable[[bytes], Fingerprint]


def partition(items: Sequence, count: int) -> List[list]:
    """Split items round-robin into `count` disjoint slices"""
    slices = [[] for _ in range(count)]
    for i, item in enumerate(items):
        slices[i % count].append(item)
    return slices


class _ErrorSink:
    """Thread-safe collector for skip notices"""

    def __init__(self):
        self._lock = threading.Lock()
        self._notices: List[SkipNotice] = []

    def add(self, notice: SkipNotice):
        with self._lock:
            self._notices.append(notice)

    def drain(self) -> List[SkipNotice]:
        with self._lock:
            notices = sorted(self._notices, key=lambda n: n.path)
            self._notices = []
        return notices


class WorkDistributor:
    """
    Fan a list of image paths out over a bounded pool of worker threads.

    Each worker owns one slice of the paths, reads each file, fingerprints it
    and inserts the record into the index. Failures turn into skip notices;
    they never stop other files from being processed.
    """

    def __init__(self,
                 threads: int = 4,
                 fingerprint_func: Optional[FingerprintFunc] = None,
                 hash_size: int = DEFAULT_HASH_SIZE,
                 show_progress: bool = True):
        if threads < 1:
            raise ValueError("threads must be >= 1")
        self.threads = threads
        self.fingerprint_func = fingerprint_func or partial(
            compute_fingerprint, hash_size=hash_size
        )
        self.show_progress = show_progress

    def distribute(self,
                   paths: Sequence[str],
                   index: DuplicateIndex,
                   stop_event: Optional[threading.Event] = None) -> ScanResult:
        """
        Hash every path exactly once and fill `index`.

        `order_key` of each record is the path's position in `paths`. When
        `stop_event` is set, workers finish the file in hand and stop; the
        result is then marked cancelled.
        """
        stop_event = stop_event or threading.Event()
        sink = _ErrorSink()
        counters_lock = threading.Lock()
        result = ScanResult()

        if not paths:
            return result

        indexed = list(enumerate(paths))
        slices = [s for s in partition(indexed, self.threads) if s]
        logger.info("Hashing %d images with %d workers", len(paths), len(slices))

        progress = tqdm(total=len(paths), desc="Hashing images",
                        unit="img", disable=not self.show_progress)

        def worker(work: list):
            for order_key, path in work:
                if stop_event.is_set():
                    return
                size = self._process(path, order_key, index, sink)
                with counters_lock:
                    result.processed += 1
                    if size is not None:
                        result.hashed += 1
                        result.bytes_read += size
                progress.update(1)

        executor = ThreadPoolExecutor(max_workers=len(slices),
                                      thread_name_prefix="hash-worker")
        try:
            futures = [executor.submit(worker, work) for work in slices]
            for future in futures:
                future.result()
        except KeyboardInterrupt:
            logger.warning("Interrupted; letting in-flight files finish")
            stop_event.set()
        finally:
            executor.shutdown(wait=True)
            progress.close()

        result.skipped = sink.drain()
        result.cancelled = stop_event.is_set() and result.processed < len(paths)
        if result.cancelled:
            logger.warning("Scan stopped after %d of %d files",
                           result.processed, len(paths))
        return result

    def _process(self, path: str, order_key: int,
                 index: DuplicateIndex, sink: _ErrorSink) -> Optional[int]:
        """Hash one file; returns bytes read, or None if it was skipped"""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            self._skip(sink, path, e.strerror or str(e), 'io')
            return None

        try:
            fingerprint = self.fingerprint_func(data)
        except DecodeError as e:
            self._skip(sink, path, str(e), 'decode')
            return None
        except HashError as e:
            self._skip(sink, path, str(e), 'hash')
            return None
        except Exception as e:
            # Decoder plugins can raise anything; one bad file must not end the slice
            logger.exception("Unexpected error hashing %s", path)
            sink.add(SkipNotice(path=path, reason=f"{type(e).__name__}: {e}", kind='error'))
            return None

        index.insert(ImageRecord(path=path, fingerprint=fingerprint,
                                 order_key=order_key))
        logger.debug("%s -> %s", path, fingerprint)
        return len(data)

    @staticmethod
    def _skip(sink: _ErrorSink, path: str, reason: str, kind: str):
        logger.warning("Skipping %s: %s", path, reason)
        sink.add(SkipNotice(path=path, reason=reason, kind=kind))
