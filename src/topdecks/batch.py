# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Batch orchestrator: list -> capture each deck -> send -> PDF -> history -> cleanup.

Failure policy:
- listing failure: whole batch fails, one user-visible error message
- one deck failing (navigation, selector, capture, send): skip notice, next deck
- PDF failure: warning only, photos already sent stay sent
- cleanup, history and notice failures: logged, never raised

Temp files are removed in a ``finally`` so cleanup runs on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from . import BatchReport, CapturedArtifact, ItemOutcome, RankedItem
from .context import AppContext
from .document import assemble
from .errors import DeliveryError, ErrorKind, ExtractionError, ResourceReleaseError, error_kind, is_item_scoped
from .history import append_history_async
from .logging_config import bound_context
from .scraper import capture_region, fetch_top_items
from .sink import DeliverySink

logger = logging.getLogger(__name__)

MSG_PROCESSING = "⏳ Fetching the top decks from Limitless..."
MSG_NO_ITEMS = "❌ No decks found right now."
MSG_SKIPPED = "⚠️ Could not process deck {rank}. Skipping to the next one..."
MSG_PDF_CAPTION = "📋 PDF with all decks"
MSG_PDF_FAILED = "⚠️ PDF generation failed, but the images were sent."
MSG_DONE = "✅ Search completed!"
MSG_FAILED = "❌ Something went wrong. Please try again later."


def format_caption(item: RankedItem) -> str:
    return f"🏆 Deck {item.position}: {item.title}\n\n📊 Position: {item.position}\n👤 Player: {item.player}"


def screenshot_name(batch_id: str, item: RankedItem) -> str:
    return f"deck_{batch_id}_{item.position}.png"


def document_name(batch_id: str) -> str:
    return f"top_decks_{batch_id}.pdf"


def visible_document_name(day: date | None = None) -> str:
    return f"top_decks_{(day or date.today()).isoformat()}.pdf"


async def notify(sink: DeliverySink, text: str) -> int | None:
    """send_text that logs instead of raising. Returns the message id or None."""
    try:
        return await sink.send_text(text)
    except Exception:
        logger.warning("Could not send notice %.40r", text, exc_info=True)
        return None


def _remove_files(paths: Iterable[Path]) -> int:
    removed = 0
    for path in dict.fromkeys(paths):
        try:
            path.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.warning("%s", ResourceReleaseError(f"Failed to remove temp file {path}: {exc}"))
    return removed


async def remove_files(paths: Iterable[Path]) -> int:
    """Delete every path; missing files are ignored, other failures logged. Returns count removed."""
    removed = await asyncio.to_thread(_remove_files, list(paths))
    logger.info("Temporary files removed: %d", removed)
    return removed


async def process_item(ctx: AppContext, item: RankedItem, batch_id: str, cleanup: list[Path]) -> ItemOutcome:
    """Capture and send one deck. Item-scoped failures become a skipped outcome."""
    config = ctx.config
    file_name = screenshot_name(batch_id, item)
    cleanup.append(config.screenshots_dir / file_name)
    logger.info("Processing deck %d: %s", item.position, item.title)

    artifact: CapturedArtifact | None = None
    try:
        path = await capture_region(item.url, file_name, config=config)
        artifact = CapturedArtifact(item=item, path=path)
        if path not in cleanup:
            cleanup.append(path)
        await ctx.sink.send_photo(path, format_caption(item))
    except Exception as exc:
        kind = error_kind(exc)
        if isinstance(exc, DeliveryError) or artifact is not None:
            kind = ErrorKind.DELIVERY_FAILED
        if not is_item_scoped(kind):
            raise
        logger.warning("Deck %d skipped (%s): %s", item.position, kind, exc)
        await notify(ctx.sink, MSG_SKIPPED.format(rank=item.position))
        return ItemOutcome(item=item, artifact=artifact, error_kind=kind, message=str(exc))

    return ItemOutcome(item=item, artifact=artifact)


async def _deliver_document(
    ctx: AppContext,
    captured: list[CapturedArtifact],
    report: BatchReport,
    cleanup: list[Path],
) -> None:
    config = ctx.config
    file_name = document_name(report.batch_id)
    cleanup.append(config.screenshots_dir / file_name)
    try:
        logger.info("Generating PDF from %d screenshots", len(captured))
        report.document = await assemble(
            captured,
            config.screenshots_dir,
            file_name=file_name,
            title=config.document_title,
        )
        if report.document is not None:
            await ctx.sink.send_document(report.document.path, visible_document_name(), MSG_PDF_CAPTION)
    except Exception as exc:
        logger.error("PDF step failed (%s): %s", error_kind(exc), exc)
        report.warnings.append(f"pdf: {exc}")
        await notify(ctx.sink, MSG_PDF_FAILED)


async def _run(ctx: AppContext, limit: int, report: BatchReport, cleanup: list[Path]) -> None:
    items = await fetch_top_items(limit, config=ctx.config)
    report.items = items
    if not items:
        report.warnings.append("no items found")
        await notify(ctx.sink, MSG_NO_ITEMS)
        return

    for item in items:
        outcome = await process_item(ctx, item, report.batch_id, cleanup)
        report.outcomes.append(outcome)
        if outcome.ok:
            await asyncio.sleep(ctx.config.delivery_delay)

    captured = [o.artifact for o in report.outcomes if o.artifact is not None]
    if captured:
        await _deliver_document(ctx, captured, report, cleanup)
    else:
        report.warnings.append("no screenshots captured")

    # Every listed deck is recorded, captured or not.
    report.history_written = await append_history_async(ctx.config.history_file, items)
    await notify(ctx.sink, MSG_DONE)


async def run_batch(ctx: AppContext, limit: int | None = None) -> BatchReport:
    """Run one batch end to end and return what happened. Never raises
    (except on cancellation); whole-batch failures set ``report.failed``."""
    batch_id = ctx.new_batch_id()
    limit = ctx.config.default_limit if limit is None else limit
    report = BatchReport(batch_id=batch_id)
    cleanup: list[Path] = []

    with bound_context(batch_id=batch_id, chat_id=ctx.chat_id):
        logger.info("Batch started (limit=%d)", limit)
        processing_id = await notify(ctx.sink, MSG_PROCESSING)
        try:
            await _run(ctx, limit, report, cleanup)
        except Exception as exc:
            report.failed = True
            kind = error_kind(exc)
            cause = exc.cause_kind if isinstance(exc, ExtractionError) else kind
            logger.error("Batch failed (%s, cause=%s): %s", kind, cause, exc, exc_info=True)
            await notify(ctx.sink, MSG_FAILED)
        finally:
            report.removed_files = await remove_files(cleanup)

        if processing_id is not None:
            try:
                await ctx.sink.delete_message(processing_id)
            except Exception:
                logger.warning("Could not delete processing message %s", processing_id, exc_info=True)

        logger.info(
            "Batch finished: %d listed, %d delivered, %d skipped, failed=%s",
            len(report.items),
            len(report.delivered),
            len(report.skipped),
            report.failed,
        )
    return report
