from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, NoReturn

import typer
from rich import print, print_json
from rich.markup import escape

from mnemosyne.config import MnemosyneConfig, load_config
from mnemosyne.mcp_server import build_store
from mnemosyne.store import MemoryStore


def resolve_config(db_path: str | None, user_id: str | None = None) -> MnemosyneConfig:
    cfg = load_config()
    if db_path:
        cfg = replace(cfg, db_path=db_path)
    if user_id:
        cfg = replace(cfg, user_id=user_id)
    return cfg


def store_from_path(db_path: str | None, user_id: str | None = None) -> MemoryStore:
    return build_store(resolve_config(db_path, user_id))


def emit(payload: Any) -> None:
    print_json(data=payload)


def fail(message: str) -> NoReturn:
    print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


def parse_json_option(value: str | None, label: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        fail(f"Invalid JSON for {label}: {exc.msg}")


def format_bytes(size: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{int(size)} B"
