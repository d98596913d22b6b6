"""Git repository status read straight from the repository's on-disk format."""

from __future__ import annotations

import hashlib
import heapq
import os
import re
import struct
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .models import GitStatus, SKMError

_ERROR_MARKERS = ("FIXME", "TODO", "XXX", "HACK", "BUG")
_RECENT_COMMITS = 5
_PACK_TYPES = {1: "commit", 2: "tree", 3: "blob", 4: "tag"}
_MODE_SYMLINK = 0o120000
_MODE_GITLINK = 0o160000
_MODE_EXECUTABLE = 0o100755
_SHORT_PREFIXES = ("refs/heads/", "refs/remotes/", "refs/tags/")


class _CorruptRepository(SKMError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Git operation failed: {message}")


def _varint(data: bytes, pos: int) -> tuple[int, int]:
    value = shift = 0
    while True:
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return value, pos


def _offset_varint(data: bytes, pos: int) -> tuple[int, int]:
    byte = data[pos]
    pos += 1
    value = byte & 0x7F
    while byte & 0x80:
        byte = data[pos]
        pos += 1
        value = ((value + 1) << 7) | (byte & 0x7F)
    return value, pos


def _apply_delta(base: bytes, delta: bytes) -> bytes:
    pos = _varint(delta, 0)[1]
    size, pos = _varint(delta, pos)
    out = bytearray()
    while pos < len(delta):
        op = delta[pos]
        pos += 1
        if op & 0x80:
            offset = length = 0
            for bit in range(4):
                if op & (1 << bit):
                    offset |= delta[pos] << (8 * bit)
                    pos += 1
            for bit in range(3):
                if op & (0x10 << bit):
                    length |= delta[pos] << (8 * bit)
                    pos += 1
            out += base[offset : offset + (length or 0x10000)]
        elif op:
            out += delta[pos : pos + op]
            pos += op
        else:
            raise _CorruptRepository("invalid delta instruction")
    if len(out) != size:
        raise _CorruptRepository("delta result has the wrong size")
    return bytes(out)


class _Pack:
    def __init__(self, index_path: Path) -> None:
        data = index_path.read_bytes()
        if data[:4] != b"\xfftOc" or struct.unpack_from(">I", data, 4)[0] != 2:
            raise _CorruptRepository(f"unsupported pack index {index_path.name}")
        (count,) = struct.unpack_from(">I", data, 8 + 255 * 4)
        shas_start = 8 + 256 * 4
        offsets_start = shas_start + 24 * count
        large_start = offsets_start + 4 * count
        shas = (data[shas_start + 20 * i : shas_start + 20 * (i + 1)].hex() for i in range(count))
        offsets = (value for (value,) in struct.iter_unpack(">I", data[offsets_start:large_start]))
        self.offsets: dict[str, int] = {}
        for sha, offset in zip(shas, offsets):
            if offset & 0x80000000:
                (offset,) = struct.unpack_from(">Q", data, large_start + 8 * (offset & 0x7FFFFFFF))
            self.offsets[sha] = offset
        self._pack_path = index_path.with_suffix(".pack")
        self._data: bytes | None = None

    def read(self, offset: int, repo: _Repository) -> tuple[str, bytes]:
        if self._data is None:
            self._data = self._pack_path.read_bytes()
        data = self._data
        byte = data[offset]
        pos = offset + 1
        kind = (byte >> 4) & 7
        while byte & 0x80:
            byte = data[pos]
            pos += 1
        if kind == 6:
            rel, pos = _offset_varint(data, pos)
            base_type, base = self.read(offset - rel, repo)
            return base_type, _apply_delta(base, zlib.decompressobj().decompress(data[pos:]))
        if kind == 7:
            base_type, base = repo.read_object(data[pos : pos + 20].hex())
            return base_type, _apply_delta(base, zlib.decompressobj().decompress(data[pos + 20 :]))
        if kind not in _PACK_TYPES:
            raise _CorruptRepository(f"unknown pack object type {kind}")
        return _PACK_TYPES[kind], zlib.decompressobj().decompress(data[pos:])


@dataclass
class _Commit:
    tree: str
    parents: list[str]
    time: int
    message: str


def _glob_regex(pattern: str) -> str:
    parts: list[str] = []
    pos = 0
    while pos < len(pattern):
        if pattern.startswith("**/", pos):
            parts.append("(?:.*/)?")
            pos += 3
        elif pattern.startswith("/**", pos) and pos + 3 == len(pattern):
            parts.append("/.*")
            pos += 3
        elif pattern.startswith("**", pos):
            parts.append(".*")
            pos += 2
        elif pattern[pos] == "*":
            parts.append("[^/]*")
            pos += 1
        elif pattern[pos] == "?":
            parts.append("[^/]")
            pos += 1
        elif pattern[pos] == "[" and "]" in pattern[pos + 1 :]:
            end = pattern.index("]", pos + 2) if pattern[pos + 1] == "]" else pattern.index("]", pos + 1)
            body = pattern[pos + 1 : end]
            if body.startswith("!"):
                body = "^" + body[1:]
            parts.append(f"[{body}]")
            pos = end + 1
        else:
            parts.append(re.escape(pattern[pos]))
            pos += 1
    return "".join(parts)


@dataclass(frozen=True)
class _IgnoreRule:
    base: str
    regex: re.Pattern[str]
    negate: bool
    dir_only: bool
    anchored: bool

    def matches(self, rel: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        if not rel.startswith(self.base):
            return False
        candidate = rel[len(self.base) :] if self.anchored else rel.rsplit("/", 1)[-1]
        return self.regex.fullmatch(candidate) is not None


def _parse_ignore(text: str, base: str) -> list[_IgnoreRule]:
    rules = []
    for raw in text.splitlines():
        line = raw.rstrip(" ")
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        if line.startswith("\\"):
            line = line[1:]
        dir_only = line.endswith("/")
        line = line.rstrip("/")
        if not line:
            continue
        anchored = "/" in line
        line = line.lstrip("/")
        rules.append(_IgnoreRule(base, re.compile(_glob_regex(line)), negate, dir_only, anchored))
    return rules


def _is_ignored(rel: str, is_dir: bool, rules: list[_IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel, is_dir):
            ignored = not rule.negate
    return ignored


def _blob_sha(content: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


@dataclass
class _Repository:
    workdir: Path
    gitdir: Path
    common: Path
    _packs: list[_Pack] | None = field(default=None, repr=False)
    _objects: dict[str, tuple[str, bytes]] = field(default_factory=dict, repr=False)

    @classmethod
    def open(cls, path: str | Path) -> _Repository | None:
        workdir = Path(path)
        dotgit = workdir / ".git"
        if dotgit.is_dir():
            gitdir = dotgit
        elif dotgit.is_file():
            text = dotgit.read_text(encoding="utf-8").strip()
            if not text.startswith("gitdir:"):
                return None
            gitdir = workdir / text.removeprefix("gitdir:").strip()
        else:
            return None
        if not (gitdir / "HEAD").is_file():
            return None
        common = gitdir
        commondir = gitdir / "commondir"
        if commondir.is_file():
            common = gitdir / commondir.read_text(encoding="utf-8").strip()
        return cls(workdir, gitdir, common)

    # references

    def _packed_refs(self) -> dict[str, str]:
        path = self.common / "packed-refs"
        if not path.is_file():
            return {}
        refs = {}
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line or line.startswith(("#", "^")):
                continue
            sha, _, name = line.partition(" ")
            refs[name.strip()] = sha
        return refs

    def resolve(self, name: str, depth: int = 0) -> str | None:
        if depth > 10:
            raise _CorruptRepository(f"reference loop at {name}")
        base = self.gitdir if name == "HEAD" else self.common
        loose = base / name
        if loose.is_file():
            content = loose.read_text(encoding="utf-8").strip()
            if content.startswith("ref:"):
                return self.resolve(content.removeprefix("ref:").strip(), depth + 1)
            return content
        return self._packed_refs().get(name)

    def head(self) -> tuple[str, str] | None:
        """Shorthand name and target of HEAD, or None when HEAD is unborn."""
        content = (self.gitdir / "HEAD").read_text(encoding="utf-8").strip()
        if not content.startswith("ref:"):
            return "HEAD", content
        ref = content.removeprefix("ref:").strip()
        target = self.resolve(ref)
        if target is None:
            return None
        short = next((ref.removeprefix(p) for p in _SHORT_PREFIXES if ref.startswith(p)), ref)
        return short, target

    def config(self) -> dict[tuple[str, str], dict[str, str]]:
        path = self.common / "config"
        sections: dict[tuple[str, str], dict[str, str]] = {}
        if not path.is_file():
            return sections
        current: dict[str, str] | None = None
        header = re.compile(r'\[\s*([\w.-]+)(?:\s+"(.*)")?\s*\]')
        for raw in path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith(("#", ";")):
                continue
            match = header.fullmatch(line)
            if match:
                key = (match.group(1).lower(), match.group(2) or "")
                current = sections.setdefault(key, {})
            elif current is not None and "=" in line:
                name, _, value = line.partition("=")
                current[name.strip().lower()] = value.strip().strip('"')
        return sections

    # objects

    def _pack_list(self) -> list[_Pack]:
        if self._packs is None:
            pack_dir = self.common / "objects" / "pack"
            indexes = sorted(pack_dir.glob("*.idx")) if pack_dir.is_dir() else []
            self._packs = [_Pack(index) for index in indexes]
        return self._packs

    def read_object(self, sha: str) -> tuple[str, bytes]:
        if sha in self._objects:
            return self._objects[sha]
        loose = self.common / "objects" / sha[:2] / sha[2:]
        if loose.is_file():
            raw = zlib.decompress(loose.read_bytes())
            header, _, body = raw.partition(b"\0")
            kind = header.split(b" ", 1)[0].decode("ascii")
            result = (kind, body)
        else:
            pack = next((p for p in self._pack_list() if sha in p.offsets), None)
            if pack is None:
                raise _CorruptRepository(f"object not found: {sha}")
            result = pack.read(pack.offsets[sha], self)
        self._objects[sha] = result
        return result

    def commit(self, sha: str) -> _Commit:
        kind, body = self.read_object(sha)
        if kind != "commit":
            raise _CorruptRepository(f"{sha} is not a commit")
        headers, _, message = body.partition(b"\n\n")
        tree = ""
        parents: list[str] = []
        time = 0
        for line in headers.split(b"\n"):
            key, _, value = line.partition(b" ")
            if key == b"tree":
                tree = value.decode("ascii")
            elif key == b"parent":
                parents.append(value.decode("ascii"))
            elif key == b"committer":
                time = int(value.rsplit(b" ", 2)[-2])
        return _Commit(tree, parents, time, message.decode("utf-8", "replace"))

    def tree_files(self, sha: str, prefix: str = "") -> dict[str, tuple[int, str]]:
        kind, body = self.read_object(sha)
        if kind != "tree":
            raise _CorruptRepository(f"{sha} is not a tree")
        files: dict[str, tuple[int, str]] = {}
        pos = 0
        while pos < len(body):
            space = body.index(b" ", pos)
            nul = body.index(b"\0", space)
            mode = int(body[pos:space], 8)
            name = prefix + body[space + 1 : nul].decode("utf-8", "surrogateescape")
            child = body[nul + 1 : nul + 21].hex()
            pos = nul + 21
            if mode == 0o40000:
                files.update(self.tree_files(child, name + "/"))
            else:
                files[name] = (mode, child)
        return files

    def ancestors(self, start: str) -> set[str]:
        seen: set[str] = set()
        stack = [start]
        while stack:
            sha = stack.pop()
            if sha not in seen:
                seen.add(sha)
                stack.extend(self.commit(sha).parents)
        return seen

    def walk_by_time(self, start: str) -> Iterator[_Commit]:
        queue = [(-self.commit(start).time, start)]
        seen = {start}
        while queue:
            _, sha = heapq.heappop(queue)
            commit = self.commit(sha)
            yield commit
            for parent in commit.parents:
                if parent not in seen:
                    seen.add(parent)
                    heapq.heappush(queue, (-self.commit(parent).time, parent))

    # working tree

    def read_index(self) -> tuple[dict[str, tuple[int, str]], bool]:
        path = self.gitdir / "index"
        if not path.is_file():
            return {}, False
        data = path.read_bytes()
        if data[:4] != b"DIRC":
            raise _CorruptRepository("invalid index signature")
        version, count = struct.unpack_from(">II", data, 4)
        if version not in (2, 3, 4):
            raise _CorruptRepository(f"unsupported index version {version}")
        entries: dict[str, tuple[int, str]] = {}
        conflicted = False
        pos = 12
        previous = b""
        for _ in range(count):
            start = pos
            mode = struct.unpack_from(">10I", data, pos)[6]
            pos += 40
            sha = data[pos : pos + 20].hex()
            pos += 20
            (flags,) = struct.unpack_from(">H", data, pos)
            pos += 2
            if version >= 3 and flags & 0x4000:
                pos += 2
            if version == 4:
                strip, pos = _offset_varint(data, pos)
                end = data.index(b"\0", pos)
                name = previous[: len(previous) - strip] + data[pos:end]
                pos = end + 1
            else:
                end = data.index(b"\0", pos)
                name = data[pos:end]
                pos = start + ((end - start + 8) & ~7)
            previous = name
            if (flags >> 12) & 3:
                conflicted = True
                continue
            entries[name.decode("utf-8", "surrogateescape")] = (mode, sha)
        return entries, conflicted

    def _worktree_matches(self, rel: str, mode: int, sha: str) -> bool:
        full = self.workdir / rel
        if mode == _MODE_GITLINK:
            return full.is_dir()
        if mode == _MODE_SYMLINK:
            if not full.is_symlink():
                return False
            return _blob_sha(os.fsencode(os.readlink(full))) == sha
        if full.is_symlink() or not full.is_file():
            return False
        if os.name == "posix":
            executable = bool(full.stat().st_mode & 0o100)
            if executable != (mode == _MODE_EXECUTABLE):
                return False
        return _blob_sha(full.read_bytes()) == sha

    def _has_untracked(self, rel_dir: str, rules: list[_IgnoreRule], index: dict) -> bool:
        directory = self.workdir / rel_dir if rel_dir else self.workdir
        ignore_file = directory / ".gitignore"
        if ignore_file.is_file():
            rules = rules + _parse_ignore(ignore_file.read_text(encoding="utf-8", errors="replace"), rel_dir)
        with os.scandir(directory) as listing:
            entries = sorted(listing, key=lambda entry: entry.name)
        for entry in entries:
            if entry.name == ".git":
                continue
            rel = rel_dir + entry.name
            if entry.is_dir(follow_symlinks=False):
                if rel in index or _is_ignored(rel, True, rules):
                    continue
                if os.path.exists(os.path.join(entry.path, ".git")):
                    return True
                if self._has_untracked(rel + "/", rules, index):
                    return True
            elif rel not in index and not _is_ignored(rel, False, rules):
                return True
        return False

    def is_clean(self) -> bool:
        index, conflicted = self.read_index()
        if conflicted:
            return False
        head = self.head()
        head_files = self.tree_files(self.commit(head[1]).tree) if head else {}
        if head_files != index:
            return False
        if not all(self._worktree_matches(rel, mode, sha) for rel, (mode, sha) in index.items()):
            return False
        exclude = self.common / "info" / "exclude"
        rules = _parse_ignore(exclude.read_text(encoding="utf-8"), "") if exclude.is_file() else []
        return not self._has_untracked("", rules, index)

    def ahead_behind(self) -> tuple[int, int]:
        head = self.head()
        if head is None:
            return 0, 0
        branch, local = head
        if self.resolve(f"refs/heads/{branch}") is None:
            return 0, 0
        settings = self.config().get(("branch", branch), {})
        remote, merge = settings.get("remote"), settings.get("merge")
        if not remote or not merge:
            return 0, 0
        upstream_ref = merge if remote == "." else f"refs/remotes/{remote}/{merge.removeprefix('refs/heads/')}"
        upstream = self.resolve(upstream_ref)
        if upstream is None:
            return 0, 0
        mine, theirs = self.ancestors(local), self.ancestors(upstream)
        return len(mine - theirs), len(theirs - mine)


def get_git_status(project_path: str | Path) -> GitStatus:
    """Branch, cleanliness, last commit and upstream distance of a project."""
    try:
        repo = _Repository.open(project_path)
        if repo is None:
            return GitStatus()
        head = repo.head()
        last_commit = None
        if head is not None:
            seconds = repo.commit(head[1]).time
            last_commit = datetime.fromtimestamp(seconds, timezone.utc)
        ahead, behind = repo.ahead_behind()
        return GitStatus(
            is_repo=True,
            branch=None if head is None else head[0],
            clean=repo.is_clean(),
            last_commit=last_commit,
            ahead=ahead,
            behind=behind,
        )
    except (OSError, zlib.error, ValueError, IndexError, struct.error) as exc:
        raise SKMError(f"Git operation failed: {exc}") from exc


def has_recent_errors(path: str | Path) -> bool:
    """Whether any of the five latest commit messages carries an error marker."""
    try:
        repo = _Repository.open(path)
    except (OSError, ValueError):
        return False
    if repo is None:
        return False
    try:
        head = repo.head()
        if head is None:
            return False
        commits = repo.walk_by_time(head[1])
        for _, commit in zip(range(_RECENT_COMMITS), commits):
            if any(marker in commit.message for marker in _ERROR_MARKERS):
                return True
    except (SKMError, OSError, zlib.error, ValueError, IndexError, struct.error):
        return False
    return False