"""CLI interface for storyhub."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from storyhub.config import StoryhubConfig, build_story_service, load_config, merge_cli_overrides
from storyhub.content.models import ItemOutcome, Outcome, Story, UploadedFile
from storyhub.errors import StoryhubError
from storyhub.stories.forms import parse_add_media_form, parse_create_form, parse_update_form
from storyhub.stories.services import StoryService

app = typer.Typer(
    name="storyhub",
    help="Manage bilingual stories and their image and video attachments.",
)

console = Console()
err_console = Console(stderr=True)

_OUTCOME_STYLES = {
    Outcome.OK: "green",
    Outcome.NOT_FOUND: "yellow",
    Outcome.FAILED: "red",
}

FileOption = Annotated[
    list[Path] | None,
    typer.Option(
        "--file",
        "-f",
        help="Image or video to attach (repeatable).",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
]
MediaTypesOption = Annotated[
    str | None,
    typer.Option("--media-types", help='Kinds per file, e.g. "image,video" or \'["image"]\'.'),
]
CaptionsOption = Annotated[
    str | None,
    typer.Option("--captions", help='Captions per file, e.g. \'["First","Second"]\'.'),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from storyhub import __version__

        console.print(f"storyhub {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a storyhub TOML config file."),
    ] = None,
    store_dir: Annotated[
        str | None,
        typer.Option("--store-dir", help="Directory holding the story store."),
    ] = None,
    storage_dir: Annotated[
        str | None,
        typer.Option("--storage-dir", help="Directory for the local media backend."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """storyhub - stories with managed media attachments."""
    _configure_logging(verbose)
    config = load_config(config_path)
    ctx.obj = merge_cli_overrides(
        config, store_directory=store_dir, storage_directory=storage_dir
    )


@contextmanager
def _service(ctx: typer.Context) -> Iterator[StoryService]:
    """Yield a wired service; domain errors end the command with exit code 1."""
    config: StoryhubConfig = ctx.obj
    try:
        service = build_story_service(config)
    except ValueError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    try:
        with service:
            yield service
    except StoryhubError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


def _load_files(paths: list[Path] | None) -> list[UploadedFile]:
    return [UploadedFile.from_path(p) for p in paths or []]


def _localized(en: str | None, rw: str | None) -> dict[str, str]:
    return {k: v for k, v in (("en", en), ("rw", rw)) if v is not None}


def _story_fields(**options: Any) -> dict[str, Any]:
    """Build a form-field mapping from CLI options, skipping unset ones."""
    fields: dict[str, Any] = {}
    title = _localized(options.pop("title_en"), options.pop("title_rw"))
    body = _localized(options.pop("body_en"), options.pop("body_rw"))
    if title:
        fields["title"] = title
    if body:
        fields["body"] = body

    metadata = {
        k: v
        for k, v in (
            ("tags", options.pop("tags")),
            ("location", options.pop("location")),
            ("duration", options.pop("duration")),
        )
        if v is not None
    }
    if metadata:
        fields["metadata"] = metadata

    wire_names = {
        "author_name": "authorName",
        "author_role": "authorRole",
        "program_id": "programId",
        "beneficiary_id": "beneficiaryId",
        "published_date": "publishedDate",
        "language": "language",
        "featured": "isFeatured",
        "published": "isPublished",
        "media_types": "mediaTypes",
        "captions": "captions",
        "remove_media": "removeMedia",
        "update_media": "updateMedia",
    }
    for key, value in options.items():
        if value is not None:
            fields[wire_names[key]] = value
    return fields


def _print_story(story: Story) -> None:
    console.print(f"[bold]{escape(story.title.en)}[/bold] / {escape(story.title.rw)}")
    console.print(f"  ID: {story.id}")
    console.print(f"  Author: {escape(story.author_name)} ({story.author_role.value})")
    console.print(
        f"  Published: {story.published_date.isoformat()}"
        f" ({'published' if story.is_published else 'draft'}"
        f"{', featured' if story.is_featured else ''})"
    )
    console.print(f"  Views: {story.view_count}  Shares: {story.share_count}")
    if not story.media:
        console.print("  [dim]No media[/dim]")
        return

    table = Table(title="Media")
    table.add_column("Kind")
    table.add_column("Public ID")
    table.add_column("Caption")
    for item in story.media:
        table.add_row(item.kind.value, item.public_id, escape(item.caption))
    console.print(table)


def _print_outcomes(title: str, outcomes: list[ItemOutcome]) -> None:
    table = Table(title=title)
    table.add_column("ID", overflow="fold")
    table.add_column("Outcome", no_wrap=True)
    table.add_column("Detail")
    for row in outcomes:
        style = _OUTCOME_STYLES[row.outcome]
        outcome = f"[{style}]{row.outcome.value}[/{style}]"
        table.add_row(escape(row.id), outcome, escape(row.detail))
    console.print(table)


@app.command()
def create(
    ctx: typer.Context,
    title_en: Annotated[str, typer.Option("--title-en", help="English title.")],
    title_rw: Annotated[str, typer.Option("--title-rw", help="Kinyarwanda title.")],
    body_en: Annotated[str, typer.Option("--body-en", help="English body.")],
    body_rw: Annotated[str, typer.Option("--body-rw", help="Kinyarwanda body.")],
    author_name: Annotated[str, typer.Option("--author", help="Author display name.")],
    author_role: Annotated[
        str, typer.Option("--author-role", help="admin, donor or beneficiary.")
    ] = "admin",
    program_id: Annotated[str | None, typer.Option("--program", help="Program ID.")] = None,
    beneficiary_id: Annotated[
        str | None, typer.Option("--beneficiary", help="Beneficiary ID.")
    ] = None,
    published_date: Annotated[
        str | None, typer.Option("--published-date", help="YYYY-MM-DD, not in the future.")
    ] = None,
    language: Annotated[str | None, typer.Option("--language", help="en or rw.")] = None,
    featured: Annotated[
        bool | None, typer.Option("--featured/--not-featured", help="Feature the story.")
    ] = None,
    published: Annotated[
        bool | None, typer.Option("--published/--draft", help="Publish immediately.")
    ] = None,
    tags: Annotated[str | None, typer.Option("--tags", help="Comma-separated tags.")] = None,
    location: Annotated[str | None, typer.Option("--location")] = None,
    duration: Annotated[
        float | None, typer.Option("--duration", help="Duration in seconds.")
    ] = None,
    files: FileOption = None,
    media_types: MediaTypesOption = None,
    captions: CaptionsOption = None,
) -> None:
    """Create a story, optionally with media attached."""
    fields = _story_fields(
        title_en=title_en, title_rw=title_rw, body_en=body_en, body_rw=body_rw,
        author_name=author_name, author_role=author_role, program_id=program_id,
        beneficiary_id=beneficiary_id, published_date=published_date, language=language,
        featured=featured, published=published, tags=tags, location=location,
        duration=duration, media_types=media_types, captions=captions,
    )
    with _service(ctx) as service:
        command = parse_create_form(fields, _load_files(files))
        resolved = service.create_story_with_media(command.request, command.attachments)
        console.print(f"[green]Created story {resolved.story.id}[/green]")
        _print_story(resolved.story)


@app.command()
def update(
    ctx: typer.Context,
    story_id: Annotated[str, typer.Argument(help="Story ID.")],
    title_en: Annotated[str | None, typer.Option("--title-en")] = None,
    title_rw: Annotated[str | None, typer.Option("--title-rw")] = None,
    body_en: Annotated[str | None, typer.Option("--body-en")] = None,
    body_rw: Annotated[str | None, typer.Option("--body-rw")] = None,
    author_name: Annotated[str | None, typer.Option("--author")] = None,
    author_role: Annotated[str | None, typer.Option("--author-role")] = None,
    program_id: Annotated[
        str | None, typer.Option("--program", help='Program ID; "" clears it.')
    ] = None,
    beneficiary_id: Annotated[
        str | None, typer.Option("--beneficiary", help='Beneficiary ID; "" clears it.')
    ] = None,
    published_date: Annotated[str | None, typer.Option("--published-date")] = None,
    language: Annotated[str | None, typer.Option("--language")] = None,
    featured: Annotated[bool | None, typer.Option("--featured/--not-featured")] = None,
    published: Annotated[bool | None, typer.Option("--published/--draft")] = None,
    tags: Annotated[str | None, typer.Option("--tags", help="Replaces all tags.")] = None,
    location: Annotated[str | None, typer.Option("--location")] = None,
    duration: Annotated[float | None, typer.Option("--duration")] = None,
    remove_media: Annotated[
        str | None,
        typer.Option("--remove-media", help='Public IDs to remove, e.g. \'["p1","p2"]\'.'),
    ] = None,
    update_media: Annotated[
        str | None,
        typer.Option(
            "--update-media", help='Caption edits, e.g. \'[{"publicId":"p1","caption":"X"}]\'.'
        ),
    ] = None,
    files: FileOption = None,
    media_types: MediaTypesOption = None,
    captions: CaptionsOption = None,
) -> None:
    """Apply field edits, media removals, caption edits and additions in one go."""
    fields = _story_fields(
        title_en=title_en, title_rw=title_rw, body_en=body_en, body_rw=body_rw,
        author_name=author_name, author_role=author_role, program_id=program_id,
        beneficiary_id=beneficiary_id, published_date=published_date, language=language,
        featured=featured, published=published, tags=tags, location=location,
        duration=duration, media_types=media_types, captions=captions,
        remove_media=remove_media, update_media=update_media,
    )
    with _service(ctx) as service:
        command = parse_update_form(fields, _load_files(files))
        resolved = service.update_story_with_media(story_id, command)
        console.print(f"[green]Updated story {story_id}[/green]")
        _print_story(resolved.story)


@app.command()
def show(
    ctx: typer.Context,
    story_id: Annotated[str, typer.Argument(help="Story ID.")],
    count_view: Annotated[
        bool, typer.Option("--count-view/--no-count-view", help="Record a view.")
    ] = True,
) -> None:
    """Show a story with its media and engagement figures."""
    with _service(ctx) as service:
        stats = service.get_story_with_stats(story_id)
        if count_view:
            service.record_view(story_id)
        _print_story(stats.story)
        if stats.program:
            console.print(f"  Program: {escape(stats.program.name or stats.program.id)}")
        if stats.beneficiary:
            console.print(
                f"  Beneficiary: {escape(stats.beneficiary.name or stats.beneficiary.id)}"
            )
        console.print(
            f"  Reading time: {stats.reading_time_minutes} min"
            f"  Media: {stats.media_count}  Engagement: {stats.engagement}"
        )


@app.command("add-media")
def add_media(
    ctx: typer.Context,
    story_id: Annotated[str, typer.Argument(help="Story ID.")],
    files: FileOption = None,
    media_types: MediaTypesOption = None,
    captions: CaptionsOption = None,
) -> None:
    """Attach one or more files to a story."""
    fields = {"mediaTypes": media_types, "captions": captions}
    with _service(ctx) as service:
        attachments = parse_add_media_form(_load_files(files), fields)
        story = service.coordinator.add_attachments(story_id, attachments)
        console.print(f"[green]Added {len(attachments)} file(s) to story {story_id}[/green]")
        _print_story(story)


@app.command("remove-media")
def remove_media_cmd(
    ctx: typer.Context,
    story_id: Annotated[str, typer.Argument(help="Story ID.")],
    public_ids: Annotated[
        list[str] | None, typer.Argument(help="Public IDs of the items to remove.")
    ] = None,
    url: Annotated[
        str | None, typer.Option("--url", help="Remove the item with this URL instead.")
    ] = None,
) -> None:
    """Remove media items from a story and delete their stored objects."""
    if not public_ids and url is None:
        err_console.print("[red]Error:[/red] Give at least one public ID or --url.")
        raise typer.Exit(1)

    with _service(ctx) as service:
        if url is not None:
            service.coordinator.remove_by_url(story_id, url)
            console.print(f"[green]Removed {escape(url)}[/green]")
            return
        result = service.coordinator.remove_many(story_id, public_ids or [])
        _print_outcomes("Media removal", result.outcomes)


@app.command()
def caption(
    ctx: typer.Context,
    story_id: Annotated[str, typer.Argument(help="Story ID.")],
    public_id: Annotated[str, typer.Argument(help="Public ID of the media item.")],
    text: Annotated[str, typer.Argument(help="New caption.")],
) -> None:
    """Change the caption of one media item."""
    with _service(ctx) as service:
        service.coordinator.update_caption(story_id, public_id, text)
        console.print(f"[green]Caption updated for {escape(public_id)}[/green]")


@app.command()
def share(
    ctx: typer.Context,
    story_id: Annotated[str, typer.Argument(help="Story ID.")],
) -> None:
    """Record a share of a story."""
    with _service(ctx) as service:
        story = service.increment_share_count(story_id)
        console.print(f"Story {story_id} shared {story.share_count} time(s)")


@app.command()
def delete(
    ctx: typer.Context,
    story_ids: Annotated[list[str], typer.Argument(help="IDs of the stories to delete.")],
) -> None:
    """Delete stories and purge their media."""
    with _service(ctx) as service:
        result = service.bulk_delete_stories(story_ids)
        _print_outcomes("Story deletion", result.outcomes)
        console.print(f"Deleted {result.deleted_count} of {len(story_ids)} stories")
    if result.failed_ids:
        raise typer.Exit(1)
