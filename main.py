"""Command line front end for the media library."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table
from typer import Argument, Context, Exit, Option, Typer

from app.viewmodels.library_vm import LibraryVM
from core.errors import LibraryError
from core.models import MediaType
from infrastructure.fetch_cache import AudioCache, ImageCache
from infrastructure.library_store import LibraryStore
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.settings import JsonSettings
from infrastructure.stats_store import PlaybackStatsStore
from infrastructure.utils import atomic_write_bytes

app = Typer(help="Manage the local media library, favorites and download cache.")
console = Console()


class CacheKind(str, Enum):
    AUDIO = "audio"
    IMAGE = "image"


def _settings(ctx: Context) -> JsonSettings:
    return ctx.obj


def _store(ctx: Context) -> LibraryStore:
    return LibraryStore.open(_settings(ctx).data_dir)


def _fail(ex: LibraryError) -> Exit:
    console.print(f"[red]Error:[/red] {ex}")
    return Exit(code=1)


def _format_duration(ms: int) -> str:
    seconds = ms // 1000
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes}:{secs:02d}"


@app.callback()
def callback(
    ctx: Context,
    settings_path: Annotated[
        Optional[Path], Option("--settings", help="Path to settings.json.")
    ] = None,
    verbose: Annotated[bool, Option("-v", "--verbose", help="Log at DEBUG level.")] = False,
) -> None:
    settings = JsonSettings(settings_path)
    level = "DEBUG" if verbose else str(settings.get("logging.level", "INFO"))
    init_logging(settings.log_dir, level=level)
    ctx.obj = settings


@app.command("list")
def list_media(
    ctx: Context,
    media_type: Annotated[
        Optional[MediaType], Option("--type", help="Only audio or video.")
    ] = None,
    keyword: Annotated[
        Optional[str], Option("--keyword", "-k", help="Match title or subtitle.")
    ] = None,
    page: Annotated[int, Option(help="1-based page number.")] = 1,
    page_size: Annotated[int, Option(help="Items per page.")] = 20,
) -> None:
    """List catalog entries."""
    result = _store(ctx).list_media_page(media_type, keyword, page, page_size)
    table = Table(title=f"Media (page {result.page}, {result.total} total)")
    for column in ("Type", "Title", "Subtitle", "Duration", "Id"):
        table.add_column(column)
    for item in result.items:
        table.add_row(
            item.type.value,
            item.title,
            item.subtitle or "",
            _format_duration(item.duration_ms),
            item.id,
        )
    console.print(table)


@app.command()
def show(ctx: Context, media_id: Annotated[str, Argument(help="Media id (its URL).")]) -> None:
    """Show one catalog entry."""
    try:
        detail = _store(ctx).media_detail(media_id)
    except LibraryError as ex:
        raise _fail(ex) from ex
    duration = _format_duration(detail.duration_ms)
    console.print(f"[bold]{detail.title}[/bold] ({detail.type.value}, {duration})")
    if detail.subtitle:
        console.print(detail.subtitle)
    console.print(f"Status: {detail.status}")
    if detail.tags:
        console.print(f"Tags: {', '.join(detail.tags)}")
    for source in detail.sources:
        console.print(f"Source [{source.format}/{source.quality}]: {source.url}")


@app.command("import")
def import_file(
    ctx: Context,
    path: Annotated[Path, Argument(help="CSV or JSON file.", exists=True, dir_okay=False)],
) -> None:
    """Merge a CSV or JSON file into the catalog."""
    vm = LibraryVM(_store(ctx))
    vm.import_file(path)
    if vm.error_message:
        console.print(f"[red]{vm.error_message}[/red]")
        raise Exit(code=1)
    console.print(vm.import_summary)


@app.command()
def export(ctx: Context, output: Annotated[Path, Argument(help="Destination JSON file.")]) -> None:
    """Write the catalog as importable JSON."""
    atomic_write_bytes(output, _store(ctx).export_json())
    console.print(f"Exported to {output}")


@app.command()
def delete(ctx: Context, media_id: Annotated[str, Argument(help="Media id to delete.")]) -> None:
    """Delete a catalog entry and its favorites."""
    try:
        deleted = _store(ctx).delete_media(media_id)
    except LibraryError as ex:
        raise _fail(ex) from ex
    console.print("Deleted." if deleted else "Nothing to delete.")


@app.command()
def groups(ctx: Context) -> None:
    """List favorites groups."""
    table = Table(title="Favorite groups")
    for column in ("Id", "Name", "Type", "Items"):
        table.add_column(column)
    for group in _store(ctx).list_groups():
        table.add_row(group.id, group.name, group.media_type.value, str(group.count))
    console.print(table)


@app.command("group-create")
def group_create(
    ctx: Context,
    name: Annotated[str, Argument(help="Group name.")],
    media_type: Annotated[
        MediaType, Option("--type", help="Media type the group accepts.")
    ] = MediaType.AUDIO,
) -> None:
    """Create a favorites group."""
    try:
        group = _store(ctx).create_group(name, media_type)
    except LibraryError as ex:
        raise _fail(ex) from ex
    console.print(f"Created {group.id}")


@app.command("group-delete")
def group_delete(ctx: Context, group_id: Annotated[str, Argument(help="Group id.")]) -> None:
    """Delete a favorites group."""
    try:
        deleted = _store(ctx).delete_group(group_id)
    except LibraryError as ex:
        raise _fail(ex) from ex
    console.print("Deleted." if deleted else "Nothing to delete.")


@app.command()
def favorites(ctx: Context, group_id: Annotated[str, Argument(help="Group id.")]) -> None:
    """List the items of a favorites group."""
    table = Table(title=f"Favorites in {group_id}")
    for column in ("Title", "Subtitle", "Duration", "Tags"):
        table.add_column(column)
    for item in _store(ctx).list_items(group_id):
        table.add_row(
            item.title,
            item.subtitle or "",
            _format_duration(item.duration_ms),
            ", ".join(item.tags or []),
        )
    console.print(table)


@app.command("favorite-add")
def favorite_add(
    ctx: Context,
    group_id: Annotated[str, Argument(help="Group id.")],
    media_id: Annotated[str, Argument(help="Media id.")],
) -> None:
    """Add a catalog entry to a favorites group."""
    try:
        item = _store(ctx).add_item(group_id, media_id)
    except LibraryError as ex:
        raise _fail(ex) from ex
    console.print(f"Added {item.title}")


@app.command("favorite-remove")
def favorite_remove(
    ctx: Context,
    group_id: Annotated[str, Argument(help="Group id.")],
    media_id: Annotated[str, Argument(help="Media id.")],
) -> None:
    """Remove a catalog entry from a favorites group."""
    try:
        removed = _store(ctx).remove_item(group_id, media_id)
    except LibraryError as ex:
        raise _fail(ex) from ex
    console.print("Removed." if removed else "Not in group.")


@app.command()
def playlists(ctx: Context) -> None:
    """Show audio grouped by tag."""
    for playlist in LibraryVM(_store(ctx)).tag_playlists():
        console.print(f"[bold]{playlist.tag}[/bold] ({len(playlist.items)})")
        for item in playlist.items:
            console.print(f"  {item.title}")


@app.command()
def cache(
    ctx: Context,
    url: Annotated[str, Argument(help="Remote URL to cache.")],
    kind: Annotated[CacheKind, Option("--kind", help="Cache flavor.")] = CacheKind.AUDIO,
    hint: Annotated[Optional[str], Option(help="Logical id salting the in-flight key.")] = None,
) -> None:
    """Download a URL into the cache and print its local location."""
    settings = _settings(ctx)
    timeout = settings.get_float("cache.http_timeout", 30.0)
    if kind is CacheKind.IMAGE:
        images = ImageCache(
            settings.cache_dir / "image",
            timeout=timeout,
            memory_count=settings.get_int("cache.image_memory_count", 200),
        )
        location = images.resolve(url)
    else:
        audio = AudioCache(settings.cache_dir / "audio", timeout=timeout)
        location = audio.cached_location(url, MediaType.AUDIO, hint=hint)
    if location == url:
        console.print(f"[yellow]Not cached, use remote:[/yellow] {url}")
    else:
        console.print(location)


@app.command()
def stats(ctx: Context, days: Annotated[int, Option(help="Days of trend to show.")] = 7) -> None:
    """Show playback time statistics."""
    store = PlaybackStatsStore.open(_settings(ctx).data_dir)
    console.print(f"Total: {_format_duration(store.total_seconds * 1000)}")
    for entry in store.daily_trend(days):
        console.print(f"{entry.id}  {_format_duration(entry.seconds * 1000)}")


@app.command()
def logs(ctx: Context) -> None:
    """Print the path of the newest log file."""
    latest = find_latest_log_file(_settings(ctx).log_dir)
    console.print(str(latest) if latest else "No log files yet.")


def main() -> None:
    try:
        app()
    except LibraryError as ex:
        logger.exception("Unhandled library error")
        console.print(f"[red]Error:[/red] {ex}")
        raise SystemExit(1) from ex


if __name__ == "__main__":
    main()
