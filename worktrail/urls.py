from __future__ import annotations

from typing import Final

CODE_HOSTS: Final[tuple[str, ...]] = ("github.com", "gitlab.com", "bitbucket.org")
RESERVED_PATH_SEGMENTS: Final[frozenset[str]] = frozenset(
    {
        "issues",
        "pull",
        "pulls",
        "pull-requests",
        "merge_requests",
        "tree",
        "blob",
        "commit",
        "commits",
        "releases",
        "actions",
        "wiki",
    }
)
TITLE_URL_MAX_LENGTH: Final = 80


def extract_domain(url: str) -> str:
    idx = url.find("://")
    if idx == -1:
        return url
    rest = url[idx + 3 :]
    slash = rest.find("/")
    return rest if slash == -1 else rest[:slash]


def parse_repository_path(origin_url: str) -> str | None:
    """Canonical ``org/repo`` path of an SSH or HTTP(S) remote URL, without ``.git``."""

    url = (origin_url or "").strip()
    path: str | None = None
    if url.startswith("git@"):
        colon = url.find(":")
        if colon != -1:
            path = url[colon + 1 :]
    elif url.startswith(("http://", "https://")):
        after_scheme = url[url.find("://") + 3 :]
        slash = after_scheme.find("/")
        if slash != -1:
            path = after_scheme[slash + 1 :]
    if path is None:
        return None
    while path.endswith(".git"):
        path = path[: -len(".git")]
    return path or None


def extract_repository_path_from_url(url: str) -> str | None:
    """``org/repo`` for a code-host URL, e.g. ``github.com/facebook/react/issues/1``."""

    domain = extract_domain(url)
    if not any(host in domain for host in CODE_HOSTS):
        return None
    idx = url.find("://")
    if idx == -1:
        return None
    rest = url[idx + 3 :]
    slash = rest.find("/")
    if slash == -1:
        return None
    path = rest[slash + 1 :]
    for sep in ("?", "#"):
        path = path.split(sep, 1)[0]
    segments: list[str] = []
    for segment in path.split("/"):
        if not segment or segment in RESERVED_PATH_SEGMENTS:
            break
        segments.append(segment)
    if len(segments) < 2:
        return None
    return "/".join(segments)


def truncate_url(url: str, limit: int = TITLE_URL_MAX_LENGTH) -> str:
    if len(url) > limit:
        return url[: limit - 3] + "..."
    return url
