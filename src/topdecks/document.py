# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Combine captured screenshots into one PDF (one A4 page per screenshot)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from . import CapturedArtifact, CombinedDocument
from .errors import AssemblyError

logger = logging.getLogger(__name__)

# Layout in points, measured from the top-left corner of the page.
MARGIN_LEFT = 50
IMAGE_TOP = 50
IMAGE_MAX_WIDTH = 500
IMAGE_MAX_HEIGHT = 700
TITLE_TOP = 30
TITLE_FONT = ("Helvetica-Bold", 16)


@dataclass(frozen=True, slots=True)
class PageLayout:
    image: Path
    title: str | None  # only set on the first page


def plan_pages(artifacts: Sequence[CapturedArtifact], title: str) -> list[PageLayout]:
    """One page per artifact, input order, title on page 1 only."""
    return [PageLayout(image=a.path, title=title if i == 0 else None) for i, a in enumerate(artifacts)]


def fit_size(width: float, height: float) -> tuple[float, float]:
    """Scale (width, height) to fit the image box, keeping aspect ratio."""
    if width <= 0 or height <= 0:
        return IMAGE_MAX_WIDTH, IMAGE_MAX_HEIGHT
    scale = min(IMAGE_MAX_WIDTH / width, IMAGE_MAX_HEIGHT / height)
    return width * scale, height * scale


def build_document(
    artifacts: Sequence[CapturedArtifact],
    out_dir: Path,
    *,
    file_name: str,
    title: str,
) -> CombinedDocument | None:
    """Write the PDF and return it, or None when there is nothing to assemble.

    Raises:
        AssemblyError: any failure while drawing or writing the file.
    """
    if not artifacts:
        logger.info("No screenshots to assemble, skipping PDF")
        return None

    path = out_dir / file_name
    page_width, page_height = A4
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        pdf = canvas.Canvas(str(path), pagesize=A4)
        pdf.setTitle(title)
        for layout in plan_pages(artifacts, title):
            image = ImageReader(str(layout.image))
            width, height = fit_size(*image.getSize())
            pdf.drawImage(
                image,
                MARGIN_LEFT,
                page_height - IMAGE_TOP - height,
                width=width,
                height=height,
            )
            if layout.title is not None:
                pdf.setFont(*TITLE_FONT)
                pdf.drawString(MARGIN_LEFT, page_height - TITLE_TOP - TITLE_FONT[1], layout.title)
            pdf.showPage()
        pdf.save()
    except Exception as exc:
        raise AssemblyError(f"Failed to generate PDF {path}: {exc}") from exc

    logger.info("PDF written: %s (%d pages, %.0fx%.0f pt)", path, len(artifacts), page_width, page_height)
    return CombinedDocument(path=path, pages=tuple(artifacts), generated_at=datetime.now())


async def assemble(
    artifacts: Sequence[CapturedArtifact],
    out_dir: Path,
    *,
    file_name: str,
    title: str,
) -> CombinedDocument | None:
    """build_document off the event loop."""
    return await asyncio.to_thread(build_document, list(artifacts), out_dir, file_name=file_name, title=title)
