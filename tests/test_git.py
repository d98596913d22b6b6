import hashlib
import struct
import zlib
from datetime import datetime, timezone

import pytest

from skm.git import get_git_status, has_recent_errors
from skm.models import GitStatus, SKMError


def _write_object(git, kind, body):
    data = f"{kind} {len(body)}\0".encode() + body
    sha = hashlib.sha1(data).hexdigest()
    path = git / "objects" / sha[:2] / sha[2:]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(zlib.compress(data))
    return sha


def _write_index(git, entries):
    body = b"DIRC" + struct.pack(">II", 2, len(entries))
    for name, (sha, size) in sorted(entries.items()):
        raw = name.encode()
        entry = struct.pack(">10I", 0, 0, 0, 0, 0, 0, 0o100644, 0, 0, size)
        entry += bytes.fromhex(sha) + struct.pack(">H", len(raw)) + raw
        entry += b"\0" * (((62 + len(raw) + 8) & ~7) - 62 - len(raw))
        body += entry
    body += hashlib.sha1(body).digest()
    (git / "index").write_bytes(body)


def _init(root):
    git = root / ".git"
    (git / "objects").mkdir(parents=True)
    (git / "refs" / "heads").mkdir(parents=True)
    (git / "HEAD").write_text("ref: refs/heads/main\n")
    return git


def _commit(root, files, message, ts, parents=(), ref="refs/heads/main", checkout=True):
    git = root / ".git"
    blobs = {}
    tree = b""
    for name, content in sorted(files.items()):
        sha = _write_object(git, "blob", content)
        blobs[name] = (sha, len(content))
        tree += b"100644 " + name.encode() + b"\0" + bytes.fromhex(sha)
    tree_sha = _write_object(git, "tree", tree)
    text = f"tree {tree_sha}\n"
    text += "".join(f"parent {p}\n" for p in parents)
    text += f"author A <a@example.com> {ts} +0000\ncommitter A <a@example.com> {ts} +0000\n\n{message}\n"
    sha = _write_object(git, "commit", text.encode())
    ref_path = git / ref
    ref_path.parent.mkdir(parents=True, exist_ok=True)
    ref_path.write_text(sha + "\n")
    if checkout:
        _write_index(git, blobs)
        for name, content in files.items():
            (root / name).write_bytes(content)
    return sha


def test_not_a_repository(tmp_path):
    assert get_git_status(tmp_path) == GitStatus()
    assert has_recent_errors(tmp_path) is False


def test_clean_repository(tmp_path):
    _init(tmp_path)
    _commit(tmp_path, {"a.txt": b"hello\n"}, "initial", 1700000000)
    status = get_git_status(tmp_path)
    assert status.is_repo
    assert status.branch == "main"
    assert status.clean
    assert status.last_commit == datetime.fromtimestamp(1700000000, timezone.utc)
    assert (status.ahead, status.behind) == (0, 0)


def test_untracked_file_makes_tree_dirty(tmp_path):
    _init(tmp_path)
    _commit(tmp_path, {"a.txt": b"hello\n"}, "initial", 1700000000)
    (tmp_path / "new.txt").write_text("x")
    assert get_git_status(tmp_path).clean is False


def test_ignored_file_keeps_tree_clean(tmp_path):
    _init(tmp_path)
    _commit(tmp_path, {".gitignore": b"*.log\n", "a.txt": b"hi\n"}, "initial", 1700000000)
    (tmp_path / "debug.log").write_text("x")
    assert get_git_status(tmp_path).clean is True


def test_modified_file_makes_tree_dirty(tmp_path):
    _init(tmp_path)
    _commit(tmp_path, {"a.txt": b"hello\n"}, "initial", 1700000000)
    (tmp_path / "a.txt").write_bytes(b"changed\n")
    assert get_git_status(tmp_path).clean is False


def test_deleted_file_makes_tree_dirty(tmp_path):
    _init(tmp_path)
    _commit(tmp_path, {"a.txt": b"hello\n"}, "initial", 1700000000)
    (tmp_path / "a.txt").unlink()
    assert get_git_status(tmp_path).clean is False


def test_unborn_head(tmp_path):
    _init(tmp_path)
    status = get_git_status(tmp_path)
    assert status.is_repo
    assert status.branch is None
    assert status.last_commit is None
    assert status.clean


def test_detached_head(tmp_path):
    git = _init(tmp_path)
    sha = _commit(tmp_path, {"a.txt": b"x"}, "initial", 1700000000)
    (git / "HEAD").write_text(sha + "\n")
    status = get_git_status(tmp_path)
    assert status.branch == "HEAD"
    assert (status.ahead, status.behind) == (0, 0)


def test_packed_refs(tmp_path):
    git = _init(tmp_path)
    sha = _commit(tmp_path, {"a.txt": b"x"}, "initial", 1600000000)
    (git / "refs" / "heads" / "main").unlink()
    (git / "packed-refs").write_text(f"# pack-refs with: peeled\n{sha} refs/heads/main\n")
    status = get_git_status(tmp_path)
    assert status.last_commit == datetime.fromtimestamp(1600000000, timezone.utc)
    assert status.clean


def test_ahead_and_behind_upstream(tmp_path):
    git = _init(tmp_path)
    first = _commit(tmp_path, {"a.txt": b"1"}, "one", 1700000000)
    _commit(tmp_path, {"a.txt": b"2"}, "two", 1700000100, parents=[first])
    (git / "refs" / "remotes" / "origin").mkdir(parents=True)
    (git / "refs" / "remotes" / "origin" / "main").write_text(first + "\n")
    (git / "config").write_text('[branch "main"]\n\tremote = origin\n\tmerge = refs/heads/main\n')
    status = get_git_status(tmp_path)
    assert (status.ahead, status.behind) == (1, 0)

    _commit(tmp_path, {"a.txt": b"3"}, "three", 1700000200, parents=[first],
            ref="refs/remotes/origin/main", checkout=False)
    status = get_git_status(tmp_path)
    assert (status.ahead, status.behind) == (1, 1)


def test_missing_commit_object_raises(tmp_path):
    git = _init(tmp_path)
    (git / "refs" / "heads" / "main").write_text("ab" * 20 + "\n")
    with pytest.raises(SKMError):
        get_git_status(tmp_path)


def test_recent_error_marker_found(tmp_path):
    _init(tmp_path)
    first = _commit(tmp_path, {"a.txt": b"1"}, "initial", 1700000000)
    _commit(tmp_path, {"a.txt": b"2"}, "FIXME later", 1700000100, parents=[first])
    assert has_recent_errors(tmp_path) is True


def test_marker_older_than_five_commits_ignored(tmp_path):
    _init(tmp_path)
    parent = _commit(tmp_path, {"a.txt": b"0"}, "BUG here", 1700000000)
    for step in range(1, 6):
        parent = _commit(tmp_path, {"a.txt": str(step).encode()}, f"step {step}",
                         1700000000 + step, parents=[parent])
    assert has_recent_errors(tmp_path) is False