# tests/test_resolution.py

import os
import random
import threading

import pytest

from conftest import InMemoryFileOperations, make_group
from imgdedup.core.exceptions import ConfigError, FileSystemError
from imgdedup.core.models import (
    ActionTaken,
    DuplicateGroup,
    Fingerprint,
    ImageRecord,
    ResolutionMode,
)
from imgdedup.core.resolution import (
    LocalFileOperations,
    ResolutionPolicy,
    select_survivor,
    unique_destination,
)


def test_survivor_ignores_record_order():
    fp = Fingerprint(1)
    records = [ImageRecord(f"/p/{n}.jpg", fp, n) for n in (4, 2, 8, 6)]

    survivors = set()
    for _ in range(10):
        random.shuffle(records)
        survivors.add(select_survivor(DuplicateGroup(fp, tuple(records))).path)

    assert survivors == {"/p/2.jpg"}


def test_survivor_ties_broken_by_path():
    fp = Fingerprint(1)
    group = DuplicateGroup(fp, (ImageRecord("/z.jpg", fp, 0), ImageRecord("/a.jpg", fp, 0)))

    assert select_survivor(group).path == "/a.jpg"


def test_delete_removes_all_but_survivor():
    paths = ["/src/a.jpg", "/src/b.jpg", "/src/c.jpg"]
    fs = InMemoryFileOperations(paths)
    policy = ResolutionPolicy(ResolutionMode.DELETE, file_ops=fs)

    outcome = policy.resolve(make_group(*paths))

    assert outcome.action_taken is ActionTaken.DELETED
    assert outcome.survivor == "/src/a.jpg"
    assert outcome.removed_or_copied == ["/src/b.jpg", "/src/c.jpg"]
    assert fs.files == {"/src/a.jpg"}
    assert outcome.errors == []
    assert outcome.succeeded == 2


def test_delete_records_failures_and_continues():
    paths = ["/src/a.jpg", "/src/b.jpg", "/src/c.jpg", "/src/d.jpg"]
    fs = InMemoryFileOperations(["/src/a.jpg", "/src/c.jpg", "/src/d.jpg"])  # b vanished
    fs.fail_on.add("/src/c.jpg")
    policy = ResolutionPolicy(ResolutionMode.DELETE, file_ops=fs)

    outcome = policy.resolve(make_group(*paths))

    assert [e.path for e in outcome.errors] == ["/src/b.jpg", "/src/c.jpg"]
    assert outcome.removed_or_copied == ["/src/d.jpg"]
    assert "/src/a.jpg" in fs.files


def test_delete_dry_run_touches_nothing():
    paths = ["/src/a.jpg", "/src/b.jpg"]
    fs = InMemoryFileOperations(paths)
    policy = ResolutionPolicy(ResolutionMode.DELETE, file_ops=fs, dry_run=True)

    outcome = policy.resolve(make_group(*paths))

    assert outcome.dry_run
    assert outcome.removed_or_copied == ["/src/b.jpg"]
    assert fs.files == set(paths)
    assert fs.removed == []


def test_keep_copies_only_survivor():
    paths = ["/src/x/photo.jpg", "/src/y/photo.jpg"]
    fs = InMemoryFileOperations(paths)
    policy = ResolutionPolicy(ResolutionMode.KEEP, destination="/out", file_ops=fs)

    outcome = policy.resolve(make_group(*paths))

    assert outcome.action_taken is ActionTaken.COPIED
    assert fs.copies == [("/src/x/photo.jpg", os.path.join("/out", "photo.jpg"))]
    assert fs.removed == []
    assert set(paths) <= fs.files
    assert outcome.destination == os.path.join("/out", "photo.jpg")
    assert outcome.succeeded == 1


def test_keep_disambiguates_existing_names():
    existing = [os.path.join("/out", "photo.jpg"), os.path.join("/out", "photo_1.jpg")]
    fs = InMemoryFileOperations(["/src/photo.jpg", "/src/b.jpg"] + existing)
    policy = ResolutionPolicy(ResolutionMode.KEEP, destination="/out", file_ops=fs)

    outcome = policy.resolve(make_group("/src/photo.jpg", "/src/b.jpg"))

    assert outcome.destination == os.path.join("/out", "photo_2.jpg")


def test_keep_concurrent_resolvers_never_share_a_name():
    fs = InMemoryFileOperations()
    groups = []
    for n in range(40):
        a, b = f"/src/{n}/img.jpg", f"/src/{n}/dup.jpg"
        fs.files.update({a, b})
        groups.append(make_group(a, b, value=n))
    policy = ResolutionPolicy(ResolutionMode.KEEP, destination="/out", file_ops=fs)

    outcomes = []
    lock = threading.Lock()

    def resolve(chunk):
        for group in chunk:
            outcome = policy.resolve(group)
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=resolve, args=(groups[i::4],)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    destinations = [o.destination for o in outcomes]
    assert len(set(destinations)) == 40
    assert all(not o.errors for o in outcomes)


def test_keep_dry_run_reserves_names():
    fs = InMemoryFileOperations(["/a/img.jpg", "/a/dup.jpg", "/b/img.jpg", "/b/dup.jpg"])
    policy = ResolutionPolicy(ResolutionMode.KEEP, destination="/out",
                              file_ops=fs, dry_run=True)

    first = policy.resolve(make_group("/a/img.jpg", "/a/dup.jpg"))
    second = policy.resolve(make_group("/b/img.jpg", "/b/dup.jpg"))

    assert first.destination != second.destination
    assert fs.copies == []


def test_keep_copy_failure_is_recorded():
    fs = InMemoryFileOperations(["/src/b.jpg"])  # survivor /src/a.jpg is gone
    policy = ResolutionPolicy(ResolutionMode.KEEP, destination="/out", file_ops=fs)

    outcome = policy.resolve(make_group("/src/a.jpg", "/src/b.jpg"))

    assert outcome.destination is None
    assert [e.path for e in outcome.errors] == ["/src/a.jpg"]
    assert outcome.succeeded == 0


def test_keep_requires_destination():
    with pytest.raises(ConfigError):
        ResolutionPolicy(ResolutionMode.KEEP)


def test_unique_destination_keeps_extension(tmp_path):
    (tmp_path / "pic.png").write_bytes(b"x")

    assert unique_destination(tmp_path, "pic.png", LocalFileOperations()).name == "pic_1.png"
    assert unique_destination(tmp_path, "other.png", LocalFileOperations()).name == "other.png"


def test_local_copy_refuses_to_overwrite(tmp_path):
    src = tmp_path / "src.jpg"
    dst = tmp_path / "dst.jpg"
    src.write_bytes(b"source")
    dst.write_bytes(b"already here")

    with pytest.raises(FileSystemError):
        LocalFileOperations().copy_file(str(src), str(dst))
    assert dst.read_bytes() == b"already here"


def test_local_copy_and_remove(tmp_path):
    src = tmp_path / "src.jpg"
    src.write_bytes(b"content")
    ops = LocalFileOperations()

    ops.copy_file(str(src), str(tmp_path / "copy.jpg"))
    ops.remove_path(str(src))

    assert not src.exists()
    assert (tmp_path / "copy.jpg").read_bytes() == b"content"
    with pytest.raises(FileSystemError):
        ops.remove_path(str(src))


def _group_of(*paths) -> DuplicateGroup:
    fp = Fingerprint(0x42)
    return DuplicateGroup(fp, tuple(ImageRecord(p, fp, i) for i, p in enumerate(paths)))


def test_delete_spares_target_of_symlinked_survivor(tmp_path):
    real = tmp_path / "b.jpg"
    real.write_bytes(b"pixels")
    link = tmp_path / "a.jpg"
    link.symlink_to(real)

    policy = ResolutionPolicy(ResolutionMode.DELETE, file_ops=LocalFileOperations())
    outcome = policy.resolve(_group_of(str(link), str(real)))

    assert outcome.survivor == str(link)
    assert outcome.removed_or_copied == []
    assert outcome.errors == []
    assert real.exists()
    assert link.read_bytes() == b"pixels"


def test_delete_spares_hard_link_of_survivor(tmp_path):
    first = tmp_path / "a.jpg"
    first.write_bytes(b"pixels")
    second = tmp_path / "b.jpg"
    os.link(first, second)
    other = tmp_path / "c.jpg"
    other.write_bytes(b"pixels")

    policy = ResolutionPolicy(ResolutionMode.DELETE, file_ops=LocalFileOperations())
    outcome = policy.resolve(_group_of(str(first), str(second), str(other)))

    assert outcome.removed_or_copied == [str(other)]
    assert first.exists() and second.exists()
    assert not other.exists()


def test_local_same_file_on_missing_path(tmp_path):
    existing = tmp_path / "a.jpg"
    existing.write_bytes(b"x")

    assert not LocalFileOperations().same_file(str(existing), str(tmp_path / "gone.jpg"))
