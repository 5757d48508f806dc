"""Upload, extraction, batch evaluation and ground-truth commands."""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path
from typing import Awaitable, TypeVar

import click
from rich.console import Console
from rich.table import Table

from nameplate.app.config import Settings
from nameplate.app.dependencies import build_service
from nameplate.domain.errors import NameplateError
from nameplate.domain.models import (FIELD_NAMES, ExtractionMethod,
                                     GroundTruthRecord, ImageRecord,
                                     PredictionRecord, StorageNamespace)
from nameplate.services import (ExtractionOutcome, ExtractionService,
                                UploadRejectedError, compare_fields, run_batch,
                                summarize_accuracy)

console = Console()

METHOD_CHOICES = click.Choice(["llm", "hybrid"], case_sensitive=False)

T = TypeVar("T")


def _settings(ctx: click.Context) -> Settings:
    settings = ctx.find_object(Settings)
    if settings is None:
        raise click.UsageError("Configuration not loaded")
    return settings


async def _closing(service: ExtractionService, coro: Awaitable[T]) -> T:
    """Await ``coro`` and release the service's HTTP clients afterwards."""
    try:
        return await coro
    finally:
        await service.close()


def _prediction_table(prediction: PredictionRecord, cached: bool) -> Table:
    title = f"Prediction {prediction.id} ({prediction.processing_method}"
    title += ", cached)" if cached else f", {prediction.processing_time_ms}ms)"
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_column("Confidence", justify="right")
    scores = prediction.confidence_scores()
    for name in FIELD_NAMES:
        value = getattr(prediction, name)
        score = scores.get(name)
        table.add_row(
            name,
            value if value is not None else "[dim]-[/dim]",
            f"{score:.2f}" if score is not None else "[dim]-[/dim]",
        )
    return table


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--owner", "owner_id", required=True, help="Owner of the image.")
@click.option("--test-mode", is_flag=True, help="Store in the test bucket.")
@click.pass_context
def upload(ctx: click.Context, path: Path, owner_id: str, test_mode: bool) -> None:
    """Upload a nameplate photo and register it."""
    service = build_service(_settings(ctx))
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    try:
        record = asyncio.run(_closing(
            service,
            service.register_upload(
                owner_id=owner_id,
                filename=path.name,
                data=path.read_bytes(),
                mime_type=mime_type,
                namespace=StorageNamespace.for_test_mode(test_mode),
            ),
        ))
    except UploadRejectedError as exc:
        raise click.BadParameter(str(exc), param_hint="PATH") from exc
    except NameplateError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(f"[green]Uploaded[/green] {record.original_filename} "
                  f"as [bold]{record.id}[/bold] ({record.file_size} bytes)")


@click.command()
@click.argument("image_id")
@click.option("--owner", "owner_id", default=None, help="Restrict to this owner.")
@click.option("--method", type=METHOD_CHOICES, default="llm", show_default=True)
@click.option("--model", "model_name", default=None, help="Vision model override.")
@click.option("--force", is_flag=True, help="Ignore any stored prediction.")
@click.option("--test-mode", is_flag=True, help="Read from the test bucket.")
@click.pass_context
def extract(
    ctx: click.Context,
    image_id: str,
    owner_id: str | None,
    method: str,
    model_name: str | None,
    force: bool,
    test_mode: bool,
) -> None:
    """Extract nameplate fields for a registered image."""
    service = build_service(_settings(ctx))
    try:
        outcome: ExtractionOutcome = asyncio.run(_closing(
            service,
            service.extract(
                image_id,
                owner_id,
                ExtractionMethod.from_string(method),
                model_name,
                force=force,
                namespace=StorageNamespace.for_test_mode(test_mode),
            ),
        ))
    except NameplateError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(_prediction_table(outcome.prediction, outcome.cached))


@click.command()
@click.option("--owner", "owner_id", default=None, help="Only this owner's images.")
@click.option("--method", type=METHOD_CHOICES, default="hybrid", show_default=True)
@click.option("--limit", type=int, default=None, help="Maximum number of images.")
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Images per batch. Omit to process all at once.",
)
@click.option("--force", is_flag=True, help="Ignore stored predictions.")
@click.option("--test-mode", is_flag=True, help="Read from the test bucket.")
@click.pass_context
def batch(
    ctx: click.Context,
    owner_id: str | None,
    method: str,
    limit: int | None,
    concurrency: int | None,
    force: bool,
    test_mode: bool,
) -> None:
    """Extract every registered image and score it against ground truth."""
    service = build_service(_settings(ctx))
    images = service.list_images(owner_id, limit)
    if not images:
        console.print("[yellow]No images to process.[/yellow]")
        return

    extraction_method = ExtractionMethod.from_string(method)
    namespace = StorageNamespace.for_test_mode(test_mode)

    async def _process(image: ImageRecord) -> ExtractionOutcome:
        return await service.extract(
            image.id, image.owner_id, extraction_method,
            force=force, namespace=namespace)

    report = asyncio.run(
        _closing(service, run_batch(_process, images, concurrency)))

    table = Table(title=f"Batch ({report.processed}/{report.total} processed)")
    table.add_column("Image", style="cyan")
    table.add_column("Status")
    table.add_column("Match")
    matches = []
    for entry in report.items:
        if not entry.ok or entry.result is None:
            table.add_row(entry.item.id, "[red]failed[/red]", entry.error or "")
            continue
        truth = service.get_ground_truth(entry.item.id, entry.item.owner_id)
        if truth is None:
            table.add_row(entry.item.id, "[green]ok[/green]", "[dim]no ground truth[/dim]")
            continue
        match = compare_fields(entry.result.prediction, truth)
        matches.append(match)
        table.add_row(
            entry.item.id,
            "[green]ok[/green]",
            "[green]yes[/green]" if match.overall_match else "[yellow]no[/yellow]",
        )
    console.print(table)

    summary = summarize_accuracy(matches)
    if summary is None:
        console.print("[dim]No ground truth available for accuracy.[/dim]")
        return
    accuracy = Table(title="Accuracy")
    accuracy.add_column("Field", style="cyan")
    accuracy.add_column("Accuracy", justify="right")
    for name, value in summary.items():
        accuracy.add_row(name, f"{value:.1f}%")
    console.print(accuracy)


@click.command(name="ground-truth")
@click.argument("image_id")
@click.option("--owner", "owner_id", required=True, help="Owner of the image.")
@click.option("--brand", default=None)
@click.option("--product-family", default=None)
@click.option("--model-number", default=None)
@click.option("--serial-number", default=None)
@click.option("--verified-by", default=None, help="Who checked the values.")
@click.option("--notes", default=None)
@click.option("--verified/--unverified", default=True, show_default=True)
@click.pass_context
def ground_truth(
    ctx: click.Context,
    image_id: str,
    owner_id: str,
    brand: str | None,
    product_family: str | None,
    model_number: str | None,
    serial_number: str | None,
    verified_by: str | None,
    notes: str | None,
    verified: bool,
) -> None:
    """Record the verified field values for an image."""
    service = build_service(_settings(ctx))
    record = GroundTruthRecord(
        image_id=image_id,
        owner_id=owner_id,
        brand=brand,
        product_family=product_family,
        model_number=model_number,
        serial_number=serial_number,
        verified_by=verified_by,
        notes=notes,
        is_verified=verified,
    )
    try:
        record_id = service.save_ground_truth(record)
    except NameplateError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Saved ground truth[/green] {record_id} for {image_id}")
