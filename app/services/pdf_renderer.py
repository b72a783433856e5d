"""Lay out rendered contract text as a US Letter PDF with ReportLab."""
from __future__ import annotations

import io
import logging
import re
from typing import Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from app.services.errors import RenderError

logger = logging.getLogger(__name__)

PRIMARY_COLOR = colors.HexColor("#1f2937")

# Provider text tags, e.g. [sig|req|recipient_1]
TEXT_TAG_RE = re.compile(r"\[[a-z_]+\|[a-z]+\|[a-z0-9_]+(?:\|[^\]]+)?\]", re.IGNORECASE)
SECTION_RE = re.compile(r"^\d+\.\s")


def _build_styles() -> Dict[str, ParagraphStyle]:
    return {
        "title": ParagraphStyle(
            "title",
            fontName="Helvetica-Bold",
            fontSize=16,
            leading=20,
            alignment=TA_CENTER,
            textColor=PRIMARY_COLOR,
            spaceAfter=12,
        ),
        "section": ParagraphStyle(
            "section",
            fontName="Helvetica-Bold",
            fontSize=11.5,
            leading=15,
            alignment=TA_LEFT,
            textColor=PRIMARY_COLOR,
            spaceBefore=8,
            spaceAfter=4,
        ),
        "body": ParagraphStyle(
            "body",
            fontName="Helvetica",
            fontSize=10.5,
            leading=14,
            alignment=TA_LEFT,
            textColor=colors.black,
            spaceAfter=4,
        ),
    }


def _is_section_heading(line: str) -> bool:
    if not SECTION_RE.match(line):
        return False
    letters = [ch for ch in line if ch.isalpha()]
    if not letters:
        return False
    return sum(ch.isupper() for ch in letters) / len(letters) >= 0.7


def _markup(line: str) -> str:
    """Escape a line and hide provider text tags (white on white)."""
    parts: List[str] = []
    position = 0
    for match in TEXT_TAG_RE.finditer(line):
        parts.append(escape(line[position:match.start()]))
        parts.append(f'<font color="white">{escape(match.group(0))}</font>')
        position = match.end()
    parts.append(escape(line[position:]))
    return "".join(parts)


def build_story(text: str, styles: Dict[str, ParagraphStyle]) -> list:
    lines = text.splitlines()
    story: list = []

    first_idx = next((idx for idx, line in enumerate(lines) if line.strip()), None)
    if first_idx is None:
        return story

    story.append(Paragraph(_markup(lines[first_idx].strip()), styles["title"]))
    for raw_line in lines[first_idx + 1:]:
        stripped = raw_line.strip()
        if not stripped:
            story.append(Spacer(1, 6))
            continue
        style_key = "section" if _is_section_heading(stripped) else "body"
        story.append(Paragraph(_markup(stripped), styles[style_key]))
    return story


def _draw_page_number(canvas_obj: canvas.Canvas, doc: SimpleDocTemplate) -> None:
    width, _height = LETTER
    canvas_obj.saveState()
    canvas_obj.setFont("Helvetica", 8)
    canvas_obj.setFillColor(colors.grey)
    canvas_obj.drawCentredString(width / 2, 36, f"Page {doc.page}")
    canvas_obj.restoreState()


def render_pdf(text: str, title: str) -> bytes:
    """
    Render structured contract text to PDF bytes.

    Raises:
        RenderError: the text is empty or ReportLab failed to build the document
    """
    styles = _build_styles()
    story = build_story(text, styles)
    if not story:
        raise RenderError("Nothing to render: contract text is empty")

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=LETTER,
        topMargin=72,
        bottomMargin=72,
        leftMargin=72,
        rightMargin=72,
        title=title,
    )
    try:
        doc.build(story, onFirstPage=_draw_page_number, onLaterPages=_draw_page_number)
    except Exception as e:
        logger.error(f"PDF rendering failed for '{title}': {e}")
        raise RenderError(f"PDF rendering failed: {e}") from e
    return buffer.getvalue()
