from __future__ import annotations

import logging
import sys

import typer
from rich import print

from . import __version__
from .commands.common import resolve_config, store_from_path
from .commands.memory_cmds import (
    entity_create_cmd,
    entity_delete_cmd,
    entity_list_cmd,
    entity_search_cmd,
    entity_update_cmd,
    event_add_cmd,
    event_delete_cmd,
    event_search_cmd,
    event_timeline_cmd,
    init_db_cmd,
    profile_delete_cmd,
    profile_get_cmd,
    profile_search_cmd,
    profile_set_cmd,
    profile_tag_cmd,
    stats_cmd,
)
from .commands.sync_cmds import sync_init_cmd, sync_remote_cmd, sync_run_cmd, sync_status_cmd
from .config import load_config

app = typer.Typer(help="mnemosyne: long-term personal memory over MCP")
profile_app = typer.Typer(help="User profile attributes")
entity_app = typer.Typer(help="Tracked entities (pets, vehicles, people, property)")
event_app = typer.Typer(help="Events and entity timelines")
sync_app = typer.Typer(help="Mirror the database through git")
app.add_typer(profile_app, name="profile")
app.add_typer(entity_app, name="entity")
app.add_typer(event_app, name="event")
app.add_typer(sync_app, name="sync")

DB_PATH_HELP = "Path to SQLite database"
USER_ID_HELP = "User whose memories to read and write"


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def init_db(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Create the SQLite database (no-op if it already exists)."""
    init_db_cmd(store_from_path=store_from_path, db_path=db_path)


@app.command()
def stats(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Show database size and record counts."""
    stats_cmd(store_from_path=store_from_path, db_path=db_path, user_id=user_id)


@app.command()
def mcp(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Run the MCP server over stdio."""
    from .mcp_server import run

    run(resolve_config(db_path, user_id))


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


# profile


@profile_app.command("set")
def profile_set(
    key: str,
    value: str,
    category: str = typer.Option(None, help="basic_info, preferences or habits"),
    tags: list[str] = typer.Option(None, "--tag", help="Repeat for multiple tags"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Add or update a profile attribute."""
    profile_set_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        key=key,
        value=value,
        category=category,
        tags=tags,
    )


@profile_app.command("get")
def profile_get(
    keys: list[str] = typer.Argument(None, help="Keys to read (default: all)"),
    category: str = typer.Option(None, help="Filter by category"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Print profile attributes."""
    profile_get_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        keys=keys,
        category=category,
    )


@profile_app.command("delete")
def profile_delete(
    key: str,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Delete a profile attribute."""
    profile_delete_cmd(store_from_path=store_from_path, db_path=db_path, user_id=user_id, key=key)


@profile_app.command("search")
def profile_search(
    keywords: list[str],
    category: str = typer.Option(None, help="Filter by category"),
    match_mode: str = typer.Option("any", help="any or all"),
    limit: int = typer.Option(20, help="Max results"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Rank profile attributes by keyword hits."""
    profile_search_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        keywords=keywords,
        category=category,
        match_mode=match_mode,
        limit=limit,
    )


@profile_app.command("tag")
def profile_tag(
    key: str,
    tags: list[str],
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Attach tags to a profile attribute."""
    profile_tag_cmd(
        store_from_path=store_from_path, db_path=db_path, user_id=user_id, key=key, tags=tags
    )


@profile_app.command("untag")
def profile_untag(
    key: str,
    tags: list[str],
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Remove tags from a profile attribute."""
    profile_tag_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        key=key,
        tags=tags,
        remove=True,
    )


# entity


@entity_app.command("create")
def entity_create(
    entity_type: str,
    name: str = typer.Option(None, help="Display name"),
    attributes: str = typer.Option(None, help="Attributes as a JSON object"),
    tags: list[str] = typer.Option(None, "--tag", help="Repeat for multiple tags"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Create an entity and print its id."""
    entity_create_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        entity_type=entity_type,
        name=name,
        attributes=attributes,
        tags=tags,
    )


@entity_app.command("update")
def entity_update(
    entity_id: int,
    name: str = typer.Option(None, help="New name"),
    attributes: str = typer.Option(None, help="Replacement attributes as JSON"),
    status: str = typer.Option(None, help="active or inactive"),
    tags: list[str] = typer.Option(None, "--tag", help="Replacement tags"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Patch the given fields of an entity."""
    entity_update_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        entity_id=entity_id,
        name=name,
        attributes=attributes,
        status=status,
        tags=tags,
    )


@entity_app.command("list")
def entity_list(
    entity_type: str = typer.Option(None, "--type", help="Filter by entity type"),
    status: str = typer.Option("active", help="active, inactive or all"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """List entities, newest first."""
    entity_list_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        entity_type=entity_type,
        status=status,
    )


@entity_app.command("delete")
def entity_delete(
    entity_id: int,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Mark an entity inactive."""
    entity_delete_cmd(
        store_from_path=store_from_path, db_path=db_path, user_id=user_id, entity_id=entity_id
    )


@entity_app.command("search")
def entity_search(
    keywords: list[str],
    entity_type: str = typer.Option(None, "--type", help="Filter by entity type"),
    fields: list[str] = typer.Option(None, "--field", help="name, attributes or all"),
    match_mode: str = typer.Option("any", help="any or all"),
    limit: int = typer.Option(20, help="Max results"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Rank active entities by keyword hits."""
    entity_search_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        keywords=keywords,
        entity_type=entity_type,
        fields=fields,
        match_mode=match_mode,
        limit=limit,
    )


# event


@event_app.command("add")
def event_add(
    event_type: str,
    description: str,
    entity_ids: list[int] = typer.Option(None, "--entity", help="Related entity id (repeat)"),
    metadata: str = typer.Option(None, help="Metadata as JSON"),
    timestamp: str = typer.Option(None, help="ISO 8601 time (default: now)"),
    importance: float = typer.Option(0.5, help="Importance between 0 and 1"),
    tags: list[str] = typer.Option(None, "--tag", help="Repeat for multiple tags"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Record an event and print its id."""
    event_add_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        event_type=event_type,
        description=description,
        entity_ids=entity_ids,
        metadata=metadata,
        timestamp=timestamp,
        importance=importance,
        tags=tags,
    )


@event_app.command("search")
def event_search(
    keywords: list[str] = typer.Argument(None, help="Keywords to rank by"),
    query: str = typer.Option(None, help="Description substring, used without keywords"),
    event_type: str = typer.Option(None, "--type", help="Filter by event type"),
    time_range: str = typer.Option(None, help="last_week, last_month, last_year, YYYY-MM, YYYY"),
    match_mode: str = typer.Option("any", help="any or all"),
    limit: int = typer.Option(20, help="Max results"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Search events by keywords or description text."""
    event_search_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        keywords=keywords,
        query=query,
        event_type=event_type,
        time_range=time_range,
        match_mode=match_mode,
        limit=limit,
    )


@event_app.command("timeline")
def event_timeline(
    entity_id: int,
    limit: int = typer.Option(10, help="Max results"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Events related to an entity, newest first."""
    event_timeline_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        user_id=user_id,
        entity_id=entity_id,
        limit=limit,
    )


@event_app.command("delete")
def event_delete(
    event_id: int,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    user_id: str = typer.Option(None, help=USER_ID_HELP),
) -> None:
    """Delete an event."""
    event_delete_cmd(
        store_from_path=store_from_path, db_path=db_path, user_id=user_id, event_id=event_id
    )


# sync


@sync_app.command("init")
def sync_init(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Make the database directory a git repository."""
    sync_init_cmd(db_path=db_path)


@sync_app.command("remote")
def sync_remote(url: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Add or update the sync remote."""
    sync_remote_cmd(db_path=db_path, url=url)


@sync_app.command("run")
def sync_run(
    force: bool = typer.Option(False, "--force", help="Reset to the remote branch when pulling"),
    branch: str = typer.Option(None, help="Branch to sync (default: current)"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Pull remote changes, then commit and push the database."""
    sync_run_cmd(db_path=db_path, direction="both", force=force, branch=branch)


@sync_app.command("push")
def sync_push(
    branch: str = typer.Option(None, help="Branch to sync (default: current)"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Commit and push the database."""
    sync_run_cmd(db_path=db_path, direction="push", force=False, branch=branch)


@sync_app.command("pull")
def sync_pull(
    force: bool = typer.Option(False, "--force", help="Reset to the remote branch"),
    branch: str = typer.Option(None, help="Branch to sync (default: current)"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Pull the database from the remote."""
    sync_run_cmd(db_path=db_path, direction="pull", force=force, branch=branch)


@sync_app.command("status")
def sync_status(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Show branch, remotes, pending changes and last commit."""
    sync_status_cmd(db_path=db_path)


def main() -> None:
    _setup_logging(load_config().log_level)
    app()


if __name__ == "__main__":
    main()
