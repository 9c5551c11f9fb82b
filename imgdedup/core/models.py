# core/models.py

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Fingerprint:
    """Fixed-width perceptual hash"""
    value: int
    bits: int = 64

    def __str__(self) -> str:
        return format(self.value, f'0{(self.bits + 3) // 4}x')


@dataclass(frozen=True)
class ImageRecord:
    """A successfully hashed file"""
    path: str
    fingerprint: Fingerprint
    order_key: int

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.order_key, self.path)


@dataclass(frozen=True)
class DuplicateGroup:
    """Records sharing one fingerprint, sorted by (order_key, path)"""
    fingerprint: Fingerprint
    records: Tuple[ImageRecord, ...]

    def __len__(self) -> int:
        return len(self.records)

    @property
    def paths(self) -> List[str]:
        return [r.path for r in self.records]


class ResolutionMode(Enum):
    DELETE = "delete"
    KEEP = "keep"


class ActionTaken(Enum):
    DELETED = "deleted"
    COPIED = "copied"


@dataclass(frozen=True)
class PathError:
    path: str
    reason: str


@dataclass(frozen=True)
class SkipNotice:
    """A file that could not be hashed"""
    path: str
    reason: str
    kind: str  # decode, hash, io, error


@dataclass
class ResolutionOutcome:
    """Result of resolving one duplicate group"""
    survivor: str
    action_taken: ActionTaken
    removed_or_copied: List[str] = field(default_factory=list)
    errors: List[PathError] = field(default_factory=list)
    destination: Optional[str] = None
    dry_run: bool = False

    @property
    def succeeded(self) -> int:
        if self.action_taken is ActionTaken.COPIED:
            return 1 if self.destination and not self.errors else 0
        return len(self.removed_or_copied)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['action_taken'] = self.action_taken.value
        return data


@dataclass
class ScanResult:
    """What the work distributor hands back after a scan"""
    processed: int = 0
    hashed: int = 0
    bytes_read: int = 0
    skipped: List[SkipNotice] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class ScanSummary:
    """Final statistics for one run"""
    mode: ResolutionMode
    files_found: int = 0
    files_scanned: int = 0
    bytes_scanned: int = 0
    duplicate_groups: int = 0
    duplicate_files: int = 0
    actions_taken: int = 0
    outcomes: List[ResolutionOutcome] = field(default_factory=list)
    scan_errors: List[SkipNotice] = field(default_factory=list)
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    @property
    def resolution_errors(self) -> List[PathError]:
        return [err for outcome in self.outcomes for err in outcome.errors]

    @property
    def error_count(self) -> int:
        return len(self.scan_errors) + len(self.resolution_errors)

    def to_dict(self) -> dict:
        return {
            'mode': self.mode.value,
            'files_found': self.files_found,
            'files_scanned': self.files_scanned,
            'bytes_scanned': self.bytes_scanned,
            'duplicate_groups': self.duplicate_groups,
            'duplicate_files': self.duplicate_files,
            'actions_taken': self.actions_taken,
            'cancelled': self.cancelled,
            'elapsed_seconds': round(self.elapsed_seconds, 3),
            'outcomes': [o.to_dict() for o in self.outcomes],
            'scan_errors': [asdict(s) for s in self.scan_errors],
        }
