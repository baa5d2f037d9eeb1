from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from .. import git_sync
from ..errors import MnemosyneError
from .common import emit, fail, resolve_config


def _run(db_path: str | None, handler: Callable[[Path, str], Any]) -> None:
    cfg = resolve_config(db_path)
    try:
        emit(handler(Path(cfg.db_path).expanduser(), cfg.sync_remote))
    except MnemosyneError as exc:
        fail(str(exc))


def sync_init_cmd(*, db_path: str | None) -> None:
    """Make the database directory a git repository."""

    _run(db_path, lambda path, _remote: git_sync.init_repo(path))


def sync_remote_cmd(*, db_path: str | None, url: str) -> None:
    _run(db_path, lambda path, remote: git_sync.set_remote(path, url, remote))


def sync_run_cmd(
    *, db_path: str | None, direction: str, force: bool, branch: str | None
) -> None:
    _run(
        db_path,
        lambda path, remote: git_sync.sync(
            path, direction, force=force, remote=remote, branch=branch
        ),
    )


def sync_status_cmd(*, db_path: str | None) -> None:
    _run(db_path, lambda path, _remote: git_sync.status(path))
