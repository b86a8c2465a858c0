import json
import math
import re
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from pathlib import Path
from typing import Any, Mapping, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas as pdf_canvas

from node_planner.response_normalizer import RawTextResult, StructuredResult, split_document

import logging
logger = logging.getLogger("node_planner")

MODULE_DIR = Path(__file__).resolve().parent
REPO_ROOT = MODULE_DIR.parent

REPORT_TITLE = "Society-as-a-Service Recommendations"
PDF_FILENAME = "recommendations.pdf"
NO_RECOMMENDATIONS_MESSAGE = (
    "The request body did not contain parseable recommendations. "
    "Send either: (1) a full object with a `recommendations` array, (2) a recommendations array, "
    "or (3) a string containing JSON (optionally inside ```json code fences```)"
)

# ------------------------------------------------------------------------------
# Font setup (DejaVu for Unicode coverage, Helvetica otherwise)
# ------------------------------------------------------------------------------
FONT_REGULAR_CANDIDATES = [
    MODULE_DIR / "fonts" / "DejaVuSans.ttf",
    REPO_ROOT / "assets" / "fonts" / "DejaVuSans.ttf",
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
]
FONT_BOLD_CANDIDATES = [
    MODULE_DIR / "fonts" / "DejaVuSans-Bold.ttf",
    REPO_ROOT / "assets" / "fonts" / "DejaVuSans-Bold.ttf",
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
    Path("/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf"),
]

UNICODE_FONT_AVAILABLE = False
PDF_FONT_REG = 'Helvetica'
PDF_FONT_BOLD = 'Helvetica-Bold'


def _first_existing_path(candidates: list[Path]) -> Optional[Path]:
    for candidate in candidates:
        if candidate.exists() and candidate.is_file():
            return candidate
    return None


def init_fonts() -> None:
    """Initialize PDF fonts with a safe fallback chain."""
    global UNICODE_FONT_AVAILABLE, PDF_FONT_REG, PDF_FONT_BOLD

    UNICODE_FONT_AVAILABLE = False
    PDF_FONT_REG = 'Helvetica'
    PDF_FONT_BOLD = 'Helvetica-Bold'

    regular = _first_existing_path(FONT_REGULAR_CANDIDATES)
    if not regular:
        logger.info('DejaVuSans not found; using built-in Helvetica fonts.')
        return

    try:
        pdfmetrics.registerFont(TTFont('DejaVuSans', str(regular)))
        bold = _first_existing_path(FONT_BOLD_CANDIDATES)
        if bold:
            pdfmetrics.registerFont(TTFont('DejaVuSans-Bold', str(bold)))
            PDF_FONT_BOLD = 'DejaVuSans-Bold'
        else:
            PDF_FONT_BOLD = 'DejaVuSans'
            logger.warning('DejaVuSans-Bold.ttf not found; using DejaVuSans regular for bold style.')
        PDF_FONT_REG = 'DejaVuSans'
        UNICODE_FONT_AVAILABLE = True
        logger.info('DejaVuSans font loaded: %s', regular)
    except Exception as e:
        PDF_FONT_REG = 'Helvetica'
        PDF_FONT_BOLD = 'Helvetica-Bold'
        logger.error('Font registration failed; falling back to Helvetica: %s', e)


# ------------------------------------------------------------------------------
# Layout config
# ------------------------------------------------------------------------------
def load_pdf_layout_config() -> dict[str, Any]:
    """Return layout defaults, overlaid with pdf_layout_config.json when present."""
    config_path = MODULE_DIR / "pdf_layout_config.json"
    config: dict[str, Any] = {
        "page": {
            "width": float(letter[0]),
            "height": float(letter[1]),
            "margin_top": 50,
            "margin_bottom": 50,
            "margin_left": 50,
            "margin_right": 50,
        },
        "fonts": {
            "title": 24,
            "heading": 18,
            "item_title": 14,
            "label": 12,
            "summary": 12,
            "body": 11,
            "detail": 10,
            "source": 9,
            "meta": 10,
            "line_gap": 1.2,
        },
        "colors": {
            "text": "#000000",
            "muted": "#808080",
            "divider": "#D9D9D9",
            "alert": "#CC0000",
            "link": "#0000B3",
        },
    }

    if not config_path.is_file():
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = json.load(f)
        if isinstance(loaded, dict):
            for section, values in loaded.items():
                if section in config and isinstance(values, dict):
                    config[section].update(values)
    except Exception as e:
        logger.warning(f"PDF layout config load failed. Using defaults: {e}")

    return config


# ------------------------------------------------------------------------------
# Value coercion
# ------------------------------------------------------------------------------
_MONEY_STRIP_RE = re.compile(r"[$€£¥,\s]")


def coerce_number(value: Any) -> Optional[float]:
    """Number or numeric-looking string -> finite float; anything else -> None."""
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            cleaned = _MONEY_STRIP_RE.sub("", value)
            if not cleaned:
                return None
            number = float(cleaned)
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def format_money(value: Any) -> Optional[str]:
    number = coerce_number(value)
    if number is None:
        return None
    if number.is_integer():
        return f"${int(number):,}"
    return "$" + f"{number:,.3f}".rstrip("0").rstrip(".")


def _text_value(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _string_items(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = []
    for entry in value:
        if isinstance(entry, bool) or not isinstance(entry, (str, int, float)):
            continue
        text = str(entry).strip()
        if text:
            items.append(text)
    return items


_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


# ------------------------------------------------------------------------------
# Word wrapping
# ------------------------------------------------------------------------------
def _split_oversized_word(word: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    if pdfmetrics.stringWidth(word, font_name, font_size) <= max_width:
        return [word]
    chunks: list[str] = []
    current = ""
    for ch in word:
        if current and pdfmetrics.stringWidth(current + ch, font_name, font_size) > max_width:
            chunks.append(current)
            current = ch
        else:
            current += ch
    if current:
        chunks.append(current)
    return chunks


def wrap_paragraph(paragraph: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    """Greedy word wrap of a single paragraph (no newlines) to ``max_width`` points."""
    lines: list[str] = []
    line = ""
    for word in paragraph.split():
        for piece in _split_oversized_word(word, font_name, font_size, max_width):
            candidate = f"{line} {piece}" if line else piece
            if line and pdfmetrics.stringWidth(candidate, font_name, font_size) > max_width:
                lines.append(line)
                line = piece
            else:
                line = candidate
    if line:
        lines.append(line)
    return lines


# ------------------------------------------------------------------------------
# Canvas writer
# ------------------------------------------------------------------------------
class PdfRenderError(RuntimeError):
    """Raised when the PDF document could not be produced."""

    kind = "render_failure"


@dataclass(frozen=True)
class DrawnLine:
    page: int
    x: float
    y: float
    text: str
    font: str
    size: float
    color: str


@dataclass(frozen=True)
class RenderedPdf:
    content: bytes
    page_count: int
    lines: tuple[DrawnLine, ...]

    def texts(self) -> list[str]:
        return [line.text for line in self.lines]


class _PdfWriter:
    """Cursor over a ReportLab canvas: draws top-down and starts pages as needed."""

    def __init__(self, buffer: BytesIO, config: dict[str, Any]):
        page_cfg = config["page"]
        self.fonts = config["fonts"]
        self.colors = config["colors"]
        self.page_width = float(page_cfg["width"])
        self.page_height = float(page_cfg["height"])
        self.margin_top = float(page_cfg["margin_top"])
        self.margin_bottom = float(page_cfg["margin_bottom"])
        self.margin_left = float(page_cfg["margin_left"])
        self.margin_right = float(page_cfg["margin_right"])
        self.content_width = self.page_width - self.margin_left - self.margin_right

        self.canvas = pdf_canvas.Canvas(buffer, pagesize=(self.page_width, self.page_height))
        self.canvas.setTitle(REPORT_TITLE)
        self.page_number = 1
        self.y = self.page_height - self.margin_top
        self.lines: list[DrawnLine] = []

    # -- pagination -----------------------------------------------------------
    def ensure_space(self, needed: float) -> None:
        if self.y - needed < self.margin_bottom:
            self.new_page()

    def new_page(self) -> None:
        self._draw_page_chrome()
        self.canvas.showPage()
        self.page_number += 1
        self.y = self.page_height - self.margin_top

    def skip(self, height: float) -> None:
        self.y -= height

    def _draw_page_chrome(self) -> None:
        c = self.canvas
        c.saveState()
        c.setStrokeColor(colors.HexColor(self.colors["divider"]))
        c.setLineWidth(0.6)
        footer_rule_y = self.margin_bottom - 10
        c.line(self.margin_left, footer_rule_y, self.page_width - self.margin_right, footer_rule_y)
        c.setFont(PDF_FONT_REG, 8)
        c.setFillColor(colors.HexColor(self.colors["muted"]))
        c.drawRightString(self.page_width - self.margin_right, footer_rule_y - 12, f"Page {self.page_number}")
        c.restoreState()

    def finish(self) -> None:
        self._draw_page_chrome()
        self.canvas.save()

    # -- drawing --------------------------------------------------------------
    def _draw_text(self, text: str, *, x: float, size: float, font: str, color: str, link: Optional[str] = None) -> None:
        c = self.canvas
        c.setFont(font, size)
        c.setFillColor(colors.HexColor(color))
        c.drawString(x, self.y, text)
        if link:
            width = pdfmetrics.stringWidth(text, font, size)
            c.linkURL(link, (x, self.y - 2, x + width, self.y + size), relative=0)
        self.lines.append(DrawnLine(self.page_number, x, self.y, text, font, size, color))

    def wrapped(
        self,
        text: str,
        *,
        size: float,
        bold: bool = False,
        indent: float = 0.0,
        color: Optional[str] = None,
        link: Optional[str] = None,
    ) -> None:
        font = PDF_FONT_BOLD if bold else PDF_FONT_REG
        color = color or self.colors["text"]
        x = self.margin_left + indent
        max_width = self.content_width - indent
        line_height = size * float(self.fonts.get("line_gap", 1.2))

        paragraphs = re.split(r"\r?\n", str(text))
        for idx, raw in enumerate(paragraphs):
            paragraph = raw.strip()
            if not paragraph:
                self.ensure_space(line_height)
                self.skip(line_height)
                continue

            for line in wrap_paragraph(paragraph, font, size, max_width):
                self.ensure_space(line_height)
                self._draw_text(line, x=x, size=size, font=font, color=color, link=link)
                self.skip(line_height)

            if idx < len(paragraphs) - 1:
                self.ensure_space(line_height * 0.4)
                self.skip(line_height * 0.4)

    def heading(self, text: str, size: float) -> None:
        self.ensure_space(size * 1.6)
        self._draw_text(text, x=self.margin_left, size=size, font=PDF_FONT_BOLD, color=self.colors["text"])
        self.skip(size * 1.6)

    def divider(self) -> None:
        self.ensure_space(12)
        c = self.canvas
        c.saveState()
        c.setStrokeColor(colors.HexColor(self.colors["divider"]))
        c.setLineWidth(0.8)
        c.line(self.margin_left, self.y, self.page_width - self.margin_right, self.y)
        c.restoreState()
        self.skip(18)


# ------------------------------------------------------------------------------
# Report sections
# ------------------------------------------------------------------------------
def _draw_header(writer: _PdfWriter, meta: Mapping[str, Any], generated_on: date) -> None:
    fonts = writer.fonts
    writer.heading(REPORT_TITLE, fonts["title"])

    writer.wrapped(
        f"Generated on: {generated_on:%B} {generated_on.day}, {generated_on.year}",
        size=fonts["meta"],
        color=writer.colors["muted"],
    )
    location = _text_value(meta.get("location"))
    if location:
        writer.wrapped(f"Location: {location}", size=fonts["meta"], color=writer.colors["muted"])
    writer.skip(14)


def _draw_summary(writer: _PdfWriter, summary: Mapping[str, Any]) -> None:
    fonts = writer.fonts
    alert = writer.colors["alert"]

    initial = format_money(summary.get("totalEstimatedInitialCost"))
    monthly = format_money(summary.get("totalEstimatedMonthlyCost"))
    over = format_money(summary.get("totalEstimatedCostOverBudget"))
    reason = _text_value(summary.get("overBudgetReason"))
    notes = _text_value(summary.get("notes"))
    if not any((initial, monthly, over, reason, notes)):
        return

    writer.heading("Summary", fonts["heading"])
    if initial:
        writer.wrapped(f"Total Estimated Initial Cost: {initial}", size=fonts["summary"])
    if monthly:
        writer.wrapped(f"Total Estimated Monthly Cost: {monthly}", size=fonts["summary"])
    # amount and reason are independently optional
    if over:
        writer.wrapped(f"Over Budget: {over}", size=fonts["summary"], color=alert)
    if reason:
        writer.wrapped(f"Reason: {reason}", size=fonts["body"], color=alert)
    if notes:
        writer.skip(6)
        writer.wrapped("Notes:", size=fonts["label"], bold=True)
        writer.wrapped(notes, size=fonts["body"])

    writer.skip(8)
    writer.divider()


def _draw_recommendation(writer: _PdfWriter, number: int, item: Mapping[str, Any]) -> None:
    fonts = writer.fonts
    name = _text_value(item.get("serviceName")) or _text_value(item.get("serviceId")) or "Service"

    writer.ensure_space(26)
    writer.wrapped(f"{number}. {name}", size=fonts["item_title"], bold=True)
    writer.skip(3)

    initial = format_money(item.get("estimatedInitialCost"))
    if initial:
        writer.wrapped(f"Initial Cost: {initial}", size=fonts["body"])
    monthly = format_money(item.get("estimatedMonthlyCost"))
    if monthly:
        writer.wrapped(f"Monthly Cost: {monthly}", size=fonts["body"])
    writer.skip(4)

    steps = _string_items(item.get("steps"))
    if steps:
        writer.wrapped("Steps:", size=fonts["label"], bold=True)
        for idx, step in enumerate(steps, 1):
            writer.wrapped(f"{idx}. {step}", size=fonts["detail"], indent=12)
        writer.skip(4)

    details = _text_value(item.get("specificRecommendations"))
    if details:
        writer.wrapped("Recommendations:", size=fonts["label"], bold=True)
        writer.wrapped(details, size=fonts["detail"])
        writer.skip(4)

    sources = _string_items(item.get("sources"))
    if sources:
        writer.wrapped("Sources:", size=fonts["label"], bold=True)
        for idx, source in enumerate(sources, 1):
            writer.wrapped(
                f"{idx}. {source}",
                size=fonts["source"],
                indent=12,
                color=writer.colors["link"],
                link=source if _URL_RE.match(source) else None,
            )

    writer.skip(10)
    writer.divider()


def _draw_fallback(writer: _PdfWriter, raw_text: str) -> None:
    fonts = writer.fonts
    if raw_text.strip():
        writer.heading("Recommendations (Raw)", fonts["heading"])
        writer.wrapped(raw_text, size=fonts["detail"])
    else:
        writer.heading("No recommendations found", fonts["heading"])
        writer.wrapped(NO_RECOMMENDATIONS_MESSAGE, size=fonts["detail"])


def _draw_report(writer: _PdfWriter, result: Any, meta: Mapping[str, Any], generated_on: date) -> None:
    if isinstance(result, StructuredResult):
        items, summary = split_document(result.document)
        raw_text = ""
    elif isinstance(result, RawTextResult):
        items, summary = [], {}
        raw_text = result.raw_text or ""
    else:
        raise TypeError(f"Expected a normalized result, got {type(result).__name__}")

    _draw_header(writer, meta, generated_on)
    _draw_summary(writer, summary)

    recommendations = [item for item in items if isinstance(item, dict)]
    if not recommendations:
        _draw_fallback(writer, raw_text)
        return

    writer.heading("Recommendations", writer.fonts["heading"])
    for number, item in enumerate(recommendations, 1):
        _draw_recommendation(writer, number, item)


def build_recommendations_pdf(
    result: Any,
    meta: Optional[Mapping[str, Any]] = None,
    *,
    generated_on: Optional[date] = None,
    layout_config: Optional[dict[str, Any]] = None,
) -> RenderedPdf:
    """Render a normalized result into a paginated US Letter PDF.

    Returns the finished bytes together with the page count and every line of
    content text drawn, in drawing order. Any failure is raised as
    ``PdfRenderError``; no partial document is returned.
    """
    config = layout_config or load_pdf_layout_config()
    try:
        with BytesIO() as buffer:
            writer = _PdfWriter(buffer, config)
            _draw_report(writer, result, meta or {}, generated_on or date.today())
            writer.finish()
            rendered = RenderedPdf(
                content=buffer.getvalue(),
                page_count=writer.page_number,
                lines=tuple(writer.lines),
            )
    except Exception as e:
        logger.exception("PDF rendering failed: %s: %s", type(e).__name__, e)
        raise PdfRenderError(f"{type(e).__name__}: {e}") from e

    logger.info("PDF rendered pages=%d bytes=%d lines=%d", rendered.page_count, len(rendered.content), len(rendered.lines))
    return rendered


def render_recommendations_pdf(
    result: Any,
    meta: Optional[Mapping[str, Any]] = None,
    *,
    generated_on: Optional[date] = None,
    layout_config: Optional[dict[str, Any]] = None,
) -> bytes:
    return build_recommendations_pdf(
        result,
        meta,
        generated_on=generated_on,
        layout_config=layout_config,
    ).content
