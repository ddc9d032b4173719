from __future__ import annotations

import hashlib
import logging
import os
import re
import subprocess
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Final, Protocol

from ..errors import ParseError, SourceUnavailable
from ..urls import parse_repository_path
from ..utils import from_epoch
from .types import (
    ACTIVITY_CHECKOUT,
    ACTIVITY_COMMIT,
    ACTIVITY_MERGE,
    ACTIVITY_PREFIXES,
    ACTIVITY_REBASE,
    ACTIVITY_STASH,
    GitActivity,
    GitRepository,
    ReflogEntry,
    SyncWindow,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH: Final = 2
SKIPPED_DIRECTORIES: Final[frozenset[str]] = frozenset(
    {"node_modules", "target", "dist", "build", "vendor", ".cache", ".npm"}
)
# HEAD plus everything under these prefixes of .git/logs.
REFLOG_PREFIXES: Final[tuple[str, ...]] = ("refs/heads", "refs/remotes")

_REFLOG_LINE_RE = re.compile(
    r"^(?P<old>[0-9a-f]+) (?P<new>[0-9a-f]+) (?P<who>.*?) (?P<ts>\d+) (?P<tz>[+-]\d{4})$"
)
_CHECKOUT_PREFIX = "checkout: moving from "
_RESET_PREFIX = "reset: moving to "


def run_git(args: Sequence[str], cwd: Path | str) -> str | None:
    try:
        out = subprocess.check_output(
            ["git", *args], cwd=str(cwd), stderr=subprocess.DEVNULL, text=True
        )
    except (subprocess.CalledProcessError, FileNotFoundError, OSError):
        return None
    return out.strip()


def repository_id(origin_url: str | None, local_path: Path) -> str:
    if origin_url:
        return hashlib.md5(origin_url.encode("utf-8")).hexdigest()
    try:
        canonical = local_path.resolve()
    except OSError:
        canonical = local_path
    return "local-" + hashlib.md5(str(canonical).encode("utf-8")).hexdigest()


def classify_reflog_message(message: str) -> str | None:
    for prefix in ACTIVITY_PREFIXES:
        if message.startswith(prefix):
            return prefix
    if ACTIVITY_STASH in message:
        return ACTIVITY_STASH
    return None


def is_ignored_reflog_message(message: str) -> bool:
    return "fetch" in message or "clone" in message


def extract_ref_name(message: str, activity_type: str) -> str | None:
    if activity_type == ACTIVITY_CHECKOUT:
        idx = message.find(" to ")
        return message[idx + 4 :] if idx != -1 else None
    if activity_type in (ACTIVITY_MERGE, ACTIVITY_REBASE):
        tokens = message.split()
        if len(tokens) < 2:
            return None
        if activity_type == ACTIVITY_MERGE:
            return tokens[1].rstrip(":")
        return tokens[1]
    return None


def format_activity_title(reflog_message: str, commit_message: str | None = None) -> str:
    if reflog_message.startswith(ACTIVITY_COMMIT) and commit_message:
        return commit_message.splitlines()[0]

    if reflog_message.startswith(_CHECKOUT_PREFIX):
        idx = reflog_message.find(" to ")
        if idx != -1:
            from_branch = reflog_message[len(_CHECKOUT_PREFIX) : idx]
            to_branch = reflog_message[idx + 4 :]
            return f"Switched to {to_branch} (from {from_branch})"

    if reflog_message.startswith("merge "):
        colon = reflog_message.find(":")
        if colon != -1:
            return f"Merged {reflog_message[6:colon].strip()}"

    if reflog_message.startswith(_RESET_PREFIX):
        return f"Reset to {reflog_message[len(_RESET_PREFIX):]}"

    if reflog_message.startswith("pull"):
        if "Fast-forward" in reflog_message:
            return "Pulled (fast-forward)"
        return "Pulled"

    if reflog_message.startswith("rebase"):
        if "(start)" in reflog_message:
            return "Rebase started"
        if "(finish)" in reflog_message:
            return "Rebase finished"
        return "Rebase"

    return reflog_message


def parse_reflog_line(line: str) -> ReflogEntry:
    header, _, message = line.rstrip("\n").partition("\t")
    match = _REFLOG_LINE_RE.match(header)
    if not match:
        raise ParseError(f"malformed reflog line: {line[:80]!r}")
    return ReflogEntry(
        old_id=match.group("old"),
        new_id=match.group("new"),
        timestamp=from_epoch(int(match.group("ts"))),
        message=message,
    )


def _git_dir(repo_path: Path) -> Path | None:
    marker = repo_path / ".git"
    if marker.is_dir():
        return marker
    if marker.is_file():
        # Worktrees and submodules point at their real git dir.
        text = marker.read_text(errors="replace").strip()
        if text.startswith("gitdir:"):
            target = Path(text[len("gitdir:") :].strip())
            if not target.is_absolute():
                target = repo_path / target
            return target
    return None


def _origin_from_config(config_text: str) -> str | None:
    in_origin = False
    for raw in config_text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ";")):
            continue
        if line.startswith("["):
            in_origin = re.match(r'^\[remote\s+"origin"\]$', line) is not None
            continue
        if in_origin:
            key, sep, value = line.partition("=")
            if sep and key.strip().lower() == "url":
                return value.strip() or None
    return None


class RepositoryReader(Protocol):
    def origin_url(self, repo_path: Path) -> str | None: ...

    def reflogs(self, repo_path: Path) -> Iterator[tuple[str, list[ReflogEntry]]]: ...

    def commit_message(self, repo_path: Path, commit_hash: str) -> str | None: ...


class GitRepositoryReader:
    """Reads reflogs and the origin remote straight from ``.git``.

    Commit messages come from the ``git`` binary; when it is missing the
    reflog message is used instead.
    """

    def origin_url(self, repo_path: Path) -> str | None:
        git_dir = _git_dir(repo_path)
        if git_dir is None:
            return None
        config = git_dir / "config"
        if not config.is_file():
            # Linked worktrees keep their config in the common dir.
            common = git_dir / "commondir"
            if not common.is_file():
                return None
            config = (git_dir / common.read_text().strip()).resolve() / "config"
            if not config.is_file():
                return None
        return _origin_from_config(config.read_text(errors="replace"))

    def reflogs(self, repo_path: Path) -> Iterator[tuple[str, list[ReflogEntry]]]:
        git_dir = _git_dir(repo_path)
        if git_dir is None:
            raise SourceUnavailable(f"{repo_path} is not a git repository")
        logs_dir = git_dir / "logs"
        head = logs_dir / "HEAD"
        if head.is_file():
            yield "HEAD", self._read_reflog(head)
        for prefix in REFLOG_PREFIXES:
            base = logs_dir / prefix
            if not base.is_dir():
                continue
            for path in sorted(base.rglob("*")):
                if path.is_file():
                    yield path.relative_to(logs_dir).as_posix(), self._read_reflog(path)

    def commit_message(self, repo_path: Path, commit_hash: str) -> str | None:
        return run_git(["log", "-1", "--format=%B", commit_hash], cwd=repo_path) or None

    def _read_reflog(self, path: Path) -> list[ReflogEntry]:
        entries: list[ReflogEntry] = []
        for line in path.read_text(errors="replace").splitlines():
            if not line.strip():
                continue
            try:
                entries.append(parse_reflog_line(line))
            except ParseError as exc:
                logger.debug("%s: %s", path, exc)
        return entries


class VersionControlSource:
    def __init__(
        self,
        root: Path | str | None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        reader: RepositoryReader | None = None,
    ):
        self.root = Path(root).expanduser() if root else None
        self.max_depth = max_depth
        self.reader: RepositoryReader = reader or GitRepositoryReader()

    def discover(self) -> list[GitRepository]:
        if self.root is None:
            raise SourceUnavailable("no repository folder configured")
        if not self.root.is_dir():
            raise SourceUnavailable(f"repository folder not found: {self.root}")
        repositories: list[GitRepository] = []
        self._walk(self.root, 0, repositories)
        return repositories

    def _walk(self, path: Path, depth: int, repositories: list[GitRepository]) -> None:
        if depth > self.max_depth:
            return
        if (path / ".git").exists():
            try:
                repositories.append(self.identify(path))
            except OSError as exc:
                logger.warning("failed to identify repository at %s: %s", path, exc)
            return
        try:
            children = sorted(os.scandir(path), key=lambda entry: entry.name)
        except OSError as exc:
            logger.warning("failed to read directory %s: %s", path, exc)
            return
        for entry in children:
            name = entry.name
            if name.startswith(".") or name in SKIPPED_DIRECTORIES:
                continue
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if is_dir:
                self._walk(Path(entry.path), depth + 1, repositories)

    def identify(self, repo_path: Path) -> GitRepository:
        origin = self.reader.origin_url(repo_path)
        return GitRepository(
            repository_id=repository_id(origin, repo_path),
            repository_name=repo_path.name or "unknown",
            local_path=repo_path,
            repository_path=parse_repository_path(origin) if origin else None,
            origin_url=origin,
        )

    def activities(self, repo: GitRepository, window: SyncWindow) -> list[GitActivity]:
        """Classified reflog activity of one repository since the window start."""

        activities: list[GitActivity] = []
        messages: dict[str, str | None] = {}
        for ref, entries in self.reader.reflogs(repo.local_path):
            for entry in entries:
                if entry.timestamp < window.start:
                    continue
                activity_type = classify_reflog_message(entry.message)
                if activity_type is None or is_ignored_reflog_message(entry.message):
                    continue
                commit_message = None
                if activity_type == ACTIVITY_COMMIT:
                    if entry.new_id not in messages:
                        messages[entry.new_id] = self.reader.commit_message(
                            repo.local_path, entry.new_id
                        )
                    commit_message = messages[entry.new_id]
                activities.append(
                    GitActivity(
                        repository=repo,
                        activity_type=activity_type,
                        timestamp=entry.timestamp,
                        title=format_activity_title(entry.message, commit_message),
                        ref_name=extract_ref_name(entry.message, activity_type),
                        commit_hash=entry.new_id,
                    )
                )
            logger.debug("%s: read reflog %s", repo.repository_name, ref)
        return activities

    def fetch(self, window: SyncWindow) -> list[GitActivity]:
        activities: list[GitActivity] = []
        for repo in self.discover():
            try:
                activities.extend(self.activities(repo, window))
            except (OSError, SourceUnavailable) as exc:
                logger.warning("skipping repository %s: %s", repo.local_path, exc)
        return activities
