# tests/conftest.py

import threading
from pathlib import Path

import cv2
import numpy as np
import pytest

from imgdedup.core.exceptions import FileSystemError
from imgdedup.core.models import DuplicateGroup, Fingerprint, ImageRecord
from imgdedup.core.resolution import FileOperations


def random_image(seed: int, size: int = 64) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 255, (size, size, 3), dtype=np.uint8)


def write_image(path: Path, img: np.ndarray) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    assert cv2.imwrite(str(path), img)
    return str(path)


def make_group(*paths: str, value: int = 0xABCD) -> DuplicateGroup:
    fp = Fingerprint(value)
    records = tuple(ImageRecord(path=p, fingerprint=fp, order_key=i)
                    for i, p in enumerate(paths))
    return DuplicateGroup(fp, records)


class InMemoryFileOperations(FileOperations):
    """FileOperations double that keeps a set of paths instead of files"""

    def __init__(self, files=()):
        self.files = set(files)
        self.removed = []
        self.copies = []
        self.fail_on = set()
        self._lock = threading.Lock()

    def exists(self, path: str) -> bool:
        return path in self.files

    def remove_path(self, path: str):
        with self._lock:
            if path in self.fail_on:
                raise FileSystemError(path, PermissionError(13, "Permission denied"))
            if path not in self.files:
                raise FileSystemError(path, FileNotFoundError(2, "No such file or directory"))
            self.files.remove(path)
            self.removed.append(path)

    def copy_file(self, source: str, destination: str):
        with self._lock:
            if source in self.fail_on or destination in self.fail_on:
                raise FileSystemError(destination, PermissionError(13, "Permission denied"))
            if source not in self.files:
                raise FileSystemError(source, FileNotFoundError(2, "No such file or directory"))
            if destination in self.files:
                raise FileSystemError(destination, FileExistsError(17, "File exists"))
            self.files.add(destination)
            self.copies.append((source, destination))


@pytest.fixture
def fake_fs():
    return InMemoryFileOperations()


@pytest.fixture
def photo_dir(tmp_path):
    """a.jpg and b.jpg share pixel content, c.jpg is different"""
    root = tmp_path / "photos"
    same = random_image(1)
    write_image(root / "a.jpg", same)
    write_image(root / "b.jpg", same)
    write_image(root / "c.jpg", random_image(2))
    return root
