from __future__ import annotations

import logging
import sqlite3
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from . import db
from .errors import GitSyncError, InvalidArgumentError
from .store.utils import now_iso

if TYPE_CHECKING:
    from .store import MemoryStore

logger = logging.getLogger(__name__)

SYNC_DIRECTIONS = ("both", "pull", "push")

GITIGNORE = """# SQLite temporary files
*.db-shm
*.db-wal

# OS files
.DS_Store
Thumbs.db

*.log
*.bak
*~
"""

_NOTHING_TO_COMMIT = ("nothing to commit", "nothing added to commit")
_EMPTY_REMOTE = ("couldn't find remote ref", "does not have any commits")


def _git(
    args: Sequence[str], cwd: Path, *, timeout: float | None = None
) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise GitSyncError("git executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitSyncError(f"git {' '.join(args)} timed out after {timeout}s") from exc


def run_git(args: Sequence[str], cwd: Path, *, timeout: float | None = None) -> str:
    """Run a git command in ``cwd`` and return its stripped stdout."""
    result = _git(args, cwd, timeout=timeout)
    if result.returncode != 0:
        output = (result.stderr or "").strip() or (result.stdout or "").strip()
        raise GitSyncError(f"git {' '.join(args)} failed: {output}")
    return (result.stdout or "").strip()


def is_git_repo(data_dir: Path) -> bool:
    return (data_dir / ".git").exists()


def _require_repo(data_dir: Path) -> None:
    if not is_git_repo(data_dir):
        raise GitSyncError(f"{data_dir} is not a git repository; run `mnemosyne sync init`")


def checkpoint_database(db_path: Path) -> None:
    if not db_path.exists():
        return
    conn = db.connect(db_path)
    try:
        conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
    except sqlite3.Error as exc:
        logger.warning("wal checkpoint failed for %s: %s", db_path, exc)
    finally:
        conn.close()


def _commit(data_dir: Path, db_name: str, message: str, *, force_add: bool = False) -> bool:
    """Stage the database and commit it. Returns False when there was nothing to commit."""
    run_git(["add", "-f", "--", db_name] if force_add else ["add", "--", db_name], data_dir)
    result = _git(["commit", "-m", message], data_dir)
    if result.returncode == 0:
        return True
    output = f"{result.stdout}\n{result.stderr}"
    if any(marker in output for marker in _NOTHING_TO_COMMIT):
        return False
    raise GitSyncError(f"git commit failed: {output.strip()}")


def current_branch(data_dir: Path) -> str:
    try:
        return run_git(["branch", "--show-current"], data_dir) or "main"
    except GitSyncError:
        return "main"


def init_repo(db_path: Path) -> dict[str, Any]:
    """Turn the database directory into a git repository with an initial commit."""
    data_dir = db_path.parent
    data_dir.mkdir(parents=True, exist_ok=True)
    run_git(["init"], data_dir)
    run_git(["config", "user.name", "Mnemosyne"], data_dir)
    run_git(["config", "user.email", "mnemosyne@local"], data_dir)
    (data_dir / ".gitignore").write_text(GITIGNORE)
    checkpoint_database(db_path)
    run_git(["add", "--", ".gitignore"], data_dir)
    if db_path.exists():
        run_git(["add", "-f", "--", db_path.name], data_dir)
    committed = _commit(
        data_dir, ".gitignore", "Initial commit: Mnemosyne memory database"
    )
    run_git(["branch", "-M", "main"], data_dir)
    logger.info("initialized git repository in %s", data_dir)
    return {"path": str(data_dir), "committed": committed, "branch": "main"}


def set_remote(db_path: Path, url: str, remote: str = "origin") -> dict[str, Any]:
    data_dir = db_path.parent
    _require_repo(data_dir)
    if not url or not url.strip():
        raise InvalidArgumentError("Remote url must be a non-empty string")
    existing = _git(["remote", "get-url", remote], data_dir)
    if existing.returncode == 0:
        previous = existing.stdout.strip()
        run_git(["remote", "set-url", remote, url], data_dir)
    else:
        previous = None
        run_git(["remote", "add", remote, url], data_dir)
    return {"remote": remote, "url": url, "previous_url": previous}


def sync(
    db_path: Path,
    direction: str = "both",
    *,
    force: bool = False,
    remote: str = "origin",
    branch: str | None = None,
) -> dict[str, Any]:
    """Pull and/or push the database file.

    ``force`` discards local history in favour of the remote branch when pulling.
    """
    direction = (direction or "").strip().lower()
    if direction not in SYNC_DIRECTIONS:
        raise InvalidArgumentError(
            f"Invalid direction '{direction}'. Allowed: {', '.join(SYNC_DIRECTIONS)}"
        )
    data_dir = db_path.parent
    _require_repo(data_dir)
    branch = branch or current_branch(data_dir)
    result: dict[str, Any] = {"branch": branch, "pulled": False, "committed": False}

    if direction in {"pull", "both"}:
        try:
            if force:
                run_git(["fetch", remote], data_dir)
                run_git(["reset", "--hard", f"{remote}/{branch}"], data_dir)
            else:
                run_git(["pull", "--rebase", remote, branch], data_dir)
            result["pulled"] = True
        except GitSyncError as exc:
            if not any(marker in str(exc) for marker in _EMPTY_REMOTE):
                raise
            logger.info("remote %s has no branch %s yet; skipping pull", remote, branch)

    if direction in {"push", "both"}:
        checkpoint_database(db_path)
        result["committed"] = _commit(
            data_dir, db_path.name, f"Update: {now_iso()}", force_add=True
        )
        push = _git(["push", remote, branch], data_dir)
        if push.returncode != 0:
            output = f"{push.stdout}\n{push.stderr}"
            if "no upstream branch" not in output:
                raise GitSyncError(f"git push failed: {output.strip()}")
            run_git(["push", "-u", remote, branch], data_dir)
        result["pushed"] = True
    return result


def status(db_path: Path) -> dict[str, Any]:
    data_dir = db_path.parent
    if not is_git_repo(data_dir):
        return {"initialized": False, "path": str(data_dir)}
    last_commit = _git(["log", "-1", "--oneline"], data_dir)
    return {
        "initialized": True,
        "path": str(data_dir),
        "branch": run_git(["branch", "--show-current"], data_dir) or None,
        "remotes": run_git(["remote", "-v"], data_dir).splitlines(),
        "changes": run_git(["status", "--short"], data_dir).splitlines(),
        "last_commit": last_commit.stdout.strip() if last_commit.returncode == 0 else None,
    }


class GitAutoSync:
    """Post-write hook that commits and pushes the database after each change.

    Does nothing unless the database directory is already a git repository. Git
    failures are logged and dropped; the write that triggered the hook has
    already been committed to SQLite.
    """

    def __init__(self, remote: str = "origin", branch: str = "main", push_timeout_s: int = 5):
        self.remote = remote
        self.branch = branch
        self.push_timeout_s = push_timeout_s
        self._last_mtime: float | None = None

    def __call__(self, store: MemoryStore) -> None:
        data_dir = store.db_path.parent
        if not is_git_repo(data_dir):
            return
        store.checkpoint()
        try:
            mtime = store.db_path.stat().st_mtime
        except OSError:
            return
        if mtime == self._last_mtime:
            return
        self._last_mtime = mtime
        try:
            committed = _commit(data_dir, store.db_path.name, f"Auto sync: {now_iso()}")
            if not committed:
                return
            run_git(
                ["push", self.remote, self.branch], data_dir, timeout=self.push_timeout_s
            )
        except GitSyncError as exc:
            logger.debug("auto sync failed: %s", exc)
