"""Git repository metadata and protocol-independent cache keys."""
from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

_SCP_LIKE_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>(?!//).+)$")


def parse_remote_url(url: str) -> Optional[Tuple[str, str, str]]:
    """Split a git remote URL into (host, owner, repo).

    Understands `git@host:owner/repo`, `ssh://git@host[:port]/owner/repo` and
    `http(s)://host/owner/repo`, each with or without a trailing `.git`.
    Returns None for anything else.
    """
    url = (url or "").strip().rstrip("/")
    if not url:
        return None

    for scheme in ("ssh://", "https://", "http://", "git://"):
        if url.startswith(scheme):
            rest = url[len(scheme):]
            host_part, _, path = rest.partition("/")
            host = host_part.rsplit("@", 1)[-1].split(":", 1)[0]
            return _host_owner_repo(host, path)

    m = _SCP_LIKE_RE.match(url)
    if m:
        return _host_owner_repo(m.group("host"), m.group("path"))
    return None


def _host_owner_repo(host: str, path: str) -> Optional[Tuple[str, str, str]]:
    parts = [p for p in path.split("/") if p]
    if not host or len(parts) < 2:
        return None
    repo = parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return host, parts[0], repo


@dataclass(frozen=True)
class GitRepository:
    user_name: str
    repository_name: str
    remote_url: str
    branch: Optional[str] = None
    commit_hash: Optional[str] = None
    is_dirty: bool = False
    root_path: Optional[Path] = None

    def cache_key(self) -> str:
        """Normalized repository key shared by every clone protocol."""
        parsed = parse_remote_url(self.remote_url)
        if parsed is not None:
            host, owner, repo = parsed
            return f"{host.replace('.', '_')}_{owner}_{repo}"
        return re.sub(r"[/:.]", "_", self.remote_url)

    def display_name(self) -> str:
        return f"{self.user_name}/{self.repository_name}"


def _run_git(args: List[str], cwd: Path) -> str:
    """Run a git command inside `cwd` and return stdout as text.

    Raises:
        RuntimeError: when `git` is missing or the command fails.
    """
    try:
        out = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        return out.stdout
    except FileNotFoundError as e:  # pragma: no cover
        raise RuntimeError("git not found on PATH") from e
    except subprocess.CalledProcessError as e:
        msg = e.stderr.strip() or e.stdout.strip() or "unknown git error"
        raise RuntimeError(f"git {' '.join(args)} failed: {msg}") from e


def _optional_git(args: List[str], cwd: Path) -> Optional[str]:
    try:
        value = _run_git(args, cwd).strip()
    except RuntimeError as e:
        logger.debug("Optional git query failed: %s", e)
        return None
    return value or None


def load_repository(path: Path | str) -> GitRepository:
    """Describe the git working tree containing `path`.

    Raises:
        RuntimeError: when git is unavailable or `path` is not inside a work tree.
    """
    start = Path(path).expanduser().resolve()
    root = Path(_run_git(["rev-parse", "--show-toplevel"], start).strip())
    remote = _optional_git(["remote", "get-url", "origin"], root) or ""
    commit = _optional_git(["rev-parse", "HEAD"], root)
    branch = _optional_git(["branch", "--show-current"], root)
    dirty = bool(_run_git(["status", "--porcelain"], root).strip())

    parsed = parse_remote_url(remote)
    if parsed is not None:
        _, owner, name = parsed
    else:
        owner, name = "local", root.name

    repo = GitRepository(
        user_name=owner,
        repository_name=name,
        remote_url=remote or str(root),
        branch=branch,
        commit_hash=commit,
        is_dirty=dirty,
        root_path=root,
    )
    logger.info("Loaded repository %s (commit=%s, dirty=%s)", repo.display_name(), commit, dirty)
    return repo


__all__ = ["GitRepository", "parse_remote_url", "load_repository"]
