# tavern_exporter/cli.py
# Description: Command line interface: list chats, export a chat, list and download its images
#
# Imports
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
#
# 3rd-Party Imports
import click
from loguru import logger
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table
#
# Local Imports
from . import __version__
from .config import get_export_dir, get_image_download_dir, load_settings
from .Constants import ALL_SORT_MODES, IMAGE_COUNT_SORT_MODES, IMAGE_FILTERS, SORT_DATE_DESC
from .Export.Chat_Export import ExportFormat
from .Exporter_Service import ExporterSession
from .Images.Image_Batches import find_batch_images
from .Images.Image_Extraction import selectable_images
from .Logging_Config import configure_logging
from .tavern_api.client import TavernAPIClient
from .tavern_api.exceptions import TavernAPIError
from .tavern_api.schemas import ChatSummary, ImageRecord
#
########################################################################################################################
#
# Functions:

console = Console()


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {text}")


def create_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )


def build_session(settings: Dict[str, Any], cookie: Optional[str] = None) -> ExporterSession:
    api = settings.get("api", {})
    client = TavernAPIClient(
        base_url=api.get("base_url", "https://api.moescape.ai"),
        cookie=cookie or api.get("session_cookie") or None,
        timeout=float(api.get("timeout", 30.0)),
        max_retries=int(api.get("max_retries", 6)),
    )
    return ExporterSession(client, site_url=api.get("site_url"))


def run_with_session(ctx: click.Context, work) -> Any:
    """Runs `work(session)` on a fresh event loop; API failures exit with status 1."""
    async def _runner() -> Any:
        async with build_session(ctx.obj["settings"], ctx.obj.get("cookie")) as session:
            return await work(session)

    try:
        return asyncio.run(_runner())
    except TavernAPIError as e:
        logger.debug(f"Command failed: {e!r}")
        print_error(str(e))
        sys.exit(1)


def _format_date(chat: ChatSummary) -> str:
    return chat.created_at.astimezone().strftime("%Y-%m-%d %H:%M") if chat.created_at else "-"


def print_chat_table(chats: List[ChatSummary]) -> None:
    table = Table(title=f"Chats ({len(chats)})")
    table.add_column("Created", style="dim")
    table.add_column("Name")
    table.add_column("Characters", style="cyan")
    table.add_column("Images", justify="right")
    table.add_column("UUID", style="dim")
    for chat in chats:
        images = "?" if chat.image_count is None else str(chat.image_count)
        table.add_row(_format_date(chat), chat.name or "", chat.character_names, images, chat.uuid)
    console.print(table)


def print_image_table(images: List[ImageRecord]) -> None:
    table = Table(title=f"Images ({len(images)})")
    table.add_column("#", justify="right")
    table.add_column("Caption")
    table.add_column("Model", style="cyan")
    table.add_column("Batch", justify="center")
    table.add_column("URL", style="dim", overflow="fold")
    for idx, image in enumerate(images):
        in_batch = len(find_batch_images(idx, images)) > 1
        table.add_row(str(idx + 1), image.message, image.model, "x2" if in_batch else "", image.url)
    console.print(table)


@click.group()
@click.version_option(__version__, prog_name="tavern-exporter")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Custom config file")
@click.option("--cookie", envvar="TAVERN_EXPORTER_COOKIE", help="Session Cookie header of a logged-in browser")
@click.option("--log-level", type=click.Choice(["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Console log level")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], cookie: Optional[str], log_level: Optional[str]) -> None:
    """Export Moescape / Yodayo Tavern chats."""
    settings = load_settings(force_reload=bool(config_path), config_path=config_path)
    configure_logging(log_level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["cookie"] = cookie


@cli.command("chats")
@click.option("--search", "-s", help="Filter by chat or character name")
@click.option("--sort", "sort_mode", type=click.Choice(ALL_SORT_MODES), default=SORT_DATE_DESC, show_default=True)
@click.option("--for-chat", help="Only chats sharing a character with this chat UUID")
@click.option("--with-image-counts", is_flag=True, help="Fetch generated-image counts (slow)")
@click.pass_context
def chats_command(ctx: click.Context, search: Optional[str], sort_mode: str, for_chat: Optional[str],
                  with_image_counts: bool) -> None:
    """List chats."""
    async def work(session: ExporterSession) -> Optional[List[ChatSummary]]:
        with console.status("Fetching chat list..."):
            chats = await session.list_chats(for_chat)
        if chats is None:
            return None
        if with_image_counts or sort_mode in IMAGE_COUNT_SORT_MODES:
            with create_progress() as progress:
                task = progress.add_task("Counting images", total=None)
                await session.fill_missing_image_counts(
                    chats, progress=lambda done, total: progress.update(task, completed=done, total=total)
                )
        return session.prepare_chat_list(chats, search=search, sort=sort_mode)

    chats = run_with_session(ctx, work)
    if not chats:
        print_warning("No chats found")
        return
    print_chat_table(chats)


@cli.command("export")
@click.argument("chat_uuid")
@click.option("--format", "-f", "export_format", type=click.Choice([f.value for f in ExportFormat]),
              default=None, help="Export format (default from config)")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Directory to write the export to")
@click.pass_context
def export_command(ctx: click.Context, chat_uuid: str, export_format: Optional[str], output_dir: Optional[str]) -> None:
    """Export one chat."""
    settings = ctx.obj["settings"]
    fmt = ExportFormat(export_format or settings.get("export", {}).get("default_format", "txt"))

    async def work(session: ExporterSession):
        with console.status(f"Fetching messages of {chat_uuid}...") as status:
            return await session.export_chat(
                chat_uuid, fmt,
                on_page=lambda chunk, total: status.update(f"Fetched {total} messages... (chunk {chunk})"),
            )

    result = run_with_session(ctx, work)
    if result is None:
        return
    if result.is_empty:
        print_warning("Nothing to download, this conversation is empty.")
        return
    path = ExporterSession.write_export(result, output_dir or get_export_dir())
    print_success(f"Exported {result.message_count} messages to {path}")


@cli.command("images")
@click.argument("chat_uuid")
@click.option("--filter", "filter_value", type=click.Choice(list(IMAGE_FILTERS)), default="all", show_default=True)
@click.option("--download", is_flag=True, help="Download the listed generated images")
@click.option("--dest", "dest_dir", type=click.Path(file_okay=False), help="Download directory (default from config)")
@click.pass_context
def images_command(ctx: click.Context, chat_uuid: str, filter_value: str, download: bool,
                   dest_dir: Optional[str]) -> None:
    """List (and optionally download) the images of a chat."""
    images_settings = ctx.obj["settings"].get("images", {})
    download_dir = (dest_dir or get_image_download_dir()) if download else None

    async def work(session: ExporterSession):
        with console.status("Collecting images..."):
            loaded = await session.load_chat_images(chat_uuid, filter_value)
        if loaded is None:
            return None
        print_image_table(loaded.images)
        if not download_dir:
            return None
        wanted = selectable_images(loaded.images)
        if not wanted:
            print_warning("No downloadable images (character photos are excluded)")
            return None
        with create_progress() as progress:
            task = progress.add_task("Downloading", total=len(wanted))
            return await session.download_images(
                wanted, download_dir,
                batch_size=int(images_settings.get("batch_size", 5)),
                batch_delay_s=float(images_settings.get("batch_delay", 1.0)),
                progress=lambda done, total: progress.update(task, completed=done),
            )

    summary = run_with_session(ctx, work)
    if summary is None:
        return
    if summary.failed:
        print_warning(f"Downloaded {summary.succeeded} of {summary.total} images ({summary.failed} failed)")
        for result in summary.results:
            if not result.success:
                console.print(f"  [dim]{result.filename}[/dim]: {result.error}")
    else:
        print_success(f"Downloaded {summary.succeeded} images to {download_dir}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()

#
# End of cli.py
########################################################################################################################
