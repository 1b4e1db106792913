"""
Document Renderer

Turns a ListingRecord into a single fixed-size listing page:
- layout(): pure slot placement and label selection (no drawing)
- render(): draws that layout onto one PDF page with reportlab

Slots: header (name + price), source image, free text (description,
facilities), details table, feature grid, issuer footer.

Every long value is clipped twice: to a character limit when the layout is
built and to a line limit when it is drawn, so the page never overflows.
Canvas output uses reportlab's invariant mode, so rendering the same layout
twice yields identical bytes.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from ..config_loader import config
from ..models import ListingRecord, SourceImage, TargetLanguage
from .labels import labels_for

logger = logging.getLogger(__name__)

ELLIPSIS = "..."

# Fixed grouping policy for the details table.
# One field = full-width row (values that run long), two = shared row.
DETAIL_ROW_GROUPS: Tuple[Tuple[str, ...], ...] = (
    ("location",),
    ("access",),
    ("layout", "size"),
    ("built_year", "floor"),
    ("management_fee", "repair_fund"),
    ("coverage_ratio", "floor_area_ratio"),
    ("restrictions",),
)

LONG_VALUE_FIELDS = frozenset(("location", "access", "restrictions"))

# Details-table caption column: wraps at spaces, widens for long words
CAPTION_FONT_SIZE = 7.5
CAPTION_LEADING = 9
CAPTION_MAX_LINES = 2
CAPTION_PADDING = 8
MIN_CAPTION_WIDTH = 58

ISSUER_KEYS = (
    "organization",
    "license_number",
    "guarantee_association",
    "member_association",
    "postal_code",
    "address_lines",
    "phone",
    "fax",
    "website",
    "email",
    "transaction_mode",
    "advertising",
)

_PAGE_SIZES = {"A4": A4, "LETTER": LETTER}


class LayoutConfigError(ValueError):
    """Document configuration is incomplete (missing issuer data, bad page size, ...)."""


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class SlotLimit:
    max_chars: int
    max_lines: int


@dataclass(frozen=True)
class FontSpec:
    regular: str
    bold: str
    cid: bool = False


@dataclass(frozen=True)
class IssuerInfo:
    """Static organization/contact data printed in the footer (not extracted)."""
    organization: str
    license_number: str
    guarantee_association: str
    member_association: str
    postal_code: str
    address_lines: Tuple[str, ...]
    phone: str
    fax: str
    website: str
    email: str
    transaction_mode: str
    advertising: str


_DEFAULT_LIMITS = {
    "property_name": SlotLimit(60, 2),
    "price": SlotLimit(30, 1),
    "description": SlotLimit(600, 9),
    "facilities": SlotLimit(240, 4),
    "short_value": SlotLimit(40, 2),
    "long_value": SlotLimit(160, 3),
    "feature": SlotLimit(40, 1),
}

_DEFAULT_FONTS = {
    "zh-TW": FontSpec("MSung-Light", "MSung-Light", True),
    "zh-CN": FontSpec("STSong-Light", "STSong-Light", True),
    "en": FontSpec("Helvetica", "Helvetica-Bold", False),
}

_DEFAULT_COLORS = {
    "primary": "#1E293B",
    "accent": "#DC2626",
    "muted": "#64748B",
    "panel": "#F8FAFC",
    "border": "#CBD5E1",
}


@dataclass(frozen=True)
class LayoutConfig:
    """
    Everything that shapes the page: size, slot limits, fonts, colors and
    the issuer block for each language.
    """
    page_size: Tuple[float, float] = A4
    margin: float = 10 * mm
    placeholder: str = "-"
    max_features: int = 8
    feature_columns: int = 2
    limits: Dict[str, SlotLimit] = field(default_factory=lambda: dict(_DEFAULT_LIMITS))
    fonts: Dict[str, FontSpec] = field(default_factory=lambda: dict(_DEFAULT_FONTS))
    colors: Dict[str, str] = field(default_factory=lambda: dict(_DEFAULT_COLORS))
    issuers: Dict[TargetLanguage, IssuerInfo] = field(default_factory=dict)

    @classmethod
    def from_config(cls) -> "LayoutConfig":
        """
        Build the layout configuration from settings.yaml.

        Raises:
            LayoutConfigError: If the page size is unknown or any language lacks issuer data
        """
        document = config.get_section('document')

        page_name = str(document.get('page_size', 'A4')).upper()
        if page_name not in _PAGE_SIZES:
            raise LayoutConfigError(f"Unsupported page size: {page_name}")

        limits = dict(_DEFAULT_LIMITS)
        for name, entry in (document.get('limits') or {}).items():
            limits[name] = SlotLimit(int(entry['max_chars']), int(entry['max_lines']))

        fonts = dict(_DEFAULT_FONTS)
        for code, entry in (document.get('fonts') or {}).items():
            fonts[code] = FontSpec(entry['regular'], entry.get('bold', entry['regular']), bool(entry.get('cid', False)))

        palette = {**_DEFAULT_COLORS, **(document.get('colors') or {})}

        return cls(
            page_size=_PAGE_SIZES[page_name],
            margin=float(document.get('margin_mm', 10)) * mm,
            placeholder=str(document.get('placeholder', '-')),
            max_features=int(document.get('max_features', 8)),
            feature_columns=int(document.get('feature_columns', 2)),
            limits=limits,
            fonts=fonts,
            colors=palette,
            issuers=load_issuers(config.get_section('issuer')),
        )

    def limit_for(self, field_name: str) -> SlotLimit:
        if field_name in self.limits:
            return self.limits[field_name]
        return self.limits["long_value" if field_name in LONG_VALUE_FIELDS else "short_value"]

    def font_for(self, language: TargetLanguage) -> FontSpec:
        return self.fonts.get(language.code, _DEFAULT_FONTS["en"])


def load_issuers(section: Dict[str, Dict]) -> Dict[TargetLanguage, IssuerInfo]:
    """
    Parse the issuer section (language code -> metadata) for every supported language.

    Raises:
        LayoutConfigError: Listing languages or keys that are missing
    """
    issuers: Dict[TargetLanguage, IssuerInfo] = {}
    problems: List[str] = []

    for language in TargetLanguage:
        entry = (section or {}).get(language.code)
        if not entry:
            problems.append(f"{language.code}: no issuer entry")
            continue
        missing = [key for key in ISSUER_KEYS if not entry.get(key)]
        if missing:
            problems.append(f"{language.code}: missing {', '.join(missing)}")
            continue
        values = {key: str(entry[key]) for key in ISSUER_KEYS if key != "address_lines"}
        lines = entry["address_lines"]
        values["address_lines"] = (str(lines),) if isinstance(lines, str) else tuple(str(line) for line in lines)
        issuers[language] = IssuerInfo(**values)

    if problems:
        raise LayoutConfigError("Incomplete issuer configuration: " + "; ".join(problems))
    return issuers


# ============================================================
# LAYOUT MODEL
# ============================================================

@dataclass(frozen=True)
class DetailCell:
    field: str
    label: str
    value: str
    is_placeholder: bool = False


@dataclass(frozen=True)
class DetailRow:
    cells: Tuple[DetailCell, ...]

    @property
    def is_full_width(self) -> bool:
        return len(self.cells) == 1


@dataclass(frozen=True)
class HeaderSlot:
    title: str
    tagline: str
    price_label: str
    price: str


@dataclass(frozen=True)
class TextBlock:
    label: str
    text: str


@dataclass(frozen=True)
class FooterBlock:
    issuer: IssuerInfo
    labels: Dict[str, str]


@dataclass(frozen=True)
class DocumentLayout:
    """Where every value goes on the page, independent of pixels."""
    language: TargetLanguage
    header: HeaderSlot
    image_caption: str
    description: TextBlock
    facilities: TextBlock
    detail_rows: Tuple[DetailRow, ...]
    features_label: str
    features: Tuple[str, ...]
    hidden_features: int
    footer: FooterBlock

    def cell(self, field_name: str) -> DetailCell:
        """Look up the specification cell holding a field."""
        for row in self.detail_rows:
            for cell in row.cells:
                if cell.field == field_name:
                    return cell
        raise KeyError(f"Field not in details table: {field_name}")


def clip_text(text: str, max_chars: int) -> str:
    """Cut text to max_chars, ending with an ellipsis when shortened."""
    text = text.strip()
    if len(text) <= max_chars:
        return text
    return text[:max(max_chars - len(ELLIPSIS), 0)].rstrip() + ELLIPSIS


def wrap_text(
    text: str,
    font_name: str,
    font_size: float,
    max_width: float,
    max_lines: int
) -> List[str]:
    """
    Greedy line wrapping measured with the real font metrics.

    Breaks at the last space when there is one (Latin text) and between
    characters otherwise (CJK text). Output is capped at max_lines; the last
    kept line ends with an ellipsis when text was dropped.
    """
    def width(value: str) -> float:
        return pdfmetrics.stringWidth(value, font_name, font_size)

    lines: List[str] = []
    for paragraph in text.splitlines():
        current = ""
        for char in paragraph:
            candidate = current + char
            if not current or width(candidate) <= max_width:
                current = candidate
                continue
            cut = current.rfind(" ")
            if char != " " and cut > 0:
                lines.append(current[:cut].rstrip())
                current = current[cut + 1:] + char
            else:
                lines.append(current.rstrip())
                current = char.lstrip()
        if current.strip():
            lines.append(current.rstrip())

    if len(lines) > max_lines:
        lines = lines[:max_lines]
        last = lines[-1]
        while last and width(last + ELLIPSIS) > max_width:
            last = last[:-1]
        lines[-1] = last.rstrip() + ELLIPSIS
    return lines


# ============================================================
# RENDERER
# ============================================================

class DocumentRenderer:
    """
    One configurable renderer for every language and page variant.
    """

    def __init__(self, layout_config: Optional[LayoutConfig] = None):
        """
        Initialize renderer.

        Args:
            layout_config: Page configuration. Defaults to settings.yaml.

        Raises:
            LayoutConfigError: If issuer data is missing for any supported language
        """
        self.config = layout_config or LayoutConfig.from_config()
        missing = [language.code for language in TargetLanguage if language not in self.config.issuers]
        if missing:
            raise LayoutConfigError(f"No issuer metadata for: {', '.join(missing)}")

        self.page_width, self.page_height = self.config.page_size
        self._palette = {name: colors.HexColor(value) for name, value in self.config.colors.items()}
        logger.debug(f"Renderer ready: page={self.page_width:.0f}x{self.page_height:.0f}pt")

    # ---------- layout ----------

    def layout(self, record: ListingRecord, target_language: TargetLanguage) -> DocumentLayout:
        """
        Place the record's values into the fixed slots with the language's captions.

        Args:
            record: Extracted listing
            target_language: Selects captions, footer and fonts

        Returns:
            DocumentLayout (deterministic for equal inputs)
        """
        labels = labels_for(target_language)
        cfg = self.config

        def value(field_name: str) -> Tuple[str, bool]:
            raw = record.value_of(field_name).strip()
            if not raw:
                return cfg.placeholder, True
            return clip_text(raw, cfg.limit_for(field_name).max_chars), False

        rows = []
        for group in DETAIL_ROW_GROUPS:
            cells = []
            for field_name in group:
                text, empty = value(field_name)
                cells.append(DetailCell(field_name, labels[field_name], text, empty))
            rows.append(DetailRow(tuple(cells)))

        feature_limit = cfg.limit_for("feature").max_chars
        shown = tuple(clip_text(item, feature_limit) for item in record.features[:cfg.max_features])

        title, _ = value("property_name")
        price, _ = value("price")
        description, _ = value("description")
        facilities, _ = value("facilities")

        return DocumentLayout(
            language=target_language,
            header=HeaderSlot(
                title=title,
                tagline=labels["tagline"],
                price_label=labels["listing_price"],
                price=price,
            ),
            image_caption=labels["image_caption"],
            description=TextBlock(labels["description"], description),
            facilities=TextBlock(labels["facilities"], facilities),
            detail_rows=tuple(rows),
            features_label=labels["features"],
            features=shown,
            hidden_features=max(len(record.features) - len(shown), 0),
            footer=FooterBlock(issuer=cfg.issuers[target_language], labels=labels),
        )

    # ---------- drawing ----------

    def render(
        self,
        record: ListingRecord,
        source_image: Optional[SourceImage],
        target_language: TargetLanguage
    ) -> bytes:
        """
        Render the listing as a single-page PDF.

        Args:
            record: Extracted listing
            source_image: Flyer image placed as-is in the image slot (None draws an empty frame)
            target_language: Output language

        Returns:
            PDF bytes
        """
        return self.render_layout(self.layout(record, target_language), source_image)

    def render_layout(self, layout: DocumentLayout, source_image: Optional[SourceImage]) -> bytes:
        """Draw an already computed layout onto one PDF page."""
        fonts = self.config.font_for(layout.language)
        self._register_fonts(fonts)

        packet = io.BytesIO()
        can = canvas.Canvas(packet, pagesize=self.config.page_size, invariant=1)
        can.setTitle(layout.header.title)
        can.setAuthor(layout.footer.issuer.organization)
        can.setSubject(layout.header.tagline)

        margin = self.config.margin
        content_width = self.page_width - 2 * margin
        top = self.page_height - margin

        header_bottom = self._draw_header(can, layout, fonts, margin, top, content_width)

        footer_height = 92
        footer_top = margin + footer_height
        self._draw_footer(can, layout, fonts, margin, margin, content_width, footer_height)

        body_top = header_bottom - 12
        gutter = 14
        left_width = content_width * 0.56
        right_width = content_width - left_width - gutter
        self._draw_left_column(can, layout, fonts, source_image, margin, body_top, left_width, footer_top + 10)
        self._draw_right_column(can, layout, fonts, margin + left_width + gutter, body_top, right_width, footer_top + 10)

        can.showPage()
        can.save()

        logger.info(
            f"Rendered listing '{layout.header.title}' ({layout.language.code}, "
            f"{len(layout.features)} feature(s), {packet.tell()} bytes)"
        )
        return packet.getvalue()

    def caption_lines(self, layout: DocumentLayout) -> Tuple[float, Dict[str, List[str]]]:
        """
        Size the details-table caption column and wrap each caption into it.

        The column is at least MIN_CAPTION_WIDTH and grows to fit the widest
        single word, so captions break at spaces but are never clipped.

        Returns:
            (column width, {field: caption lines})
        """
        fonts = self.config.font_for(layout.language)
        self._register_fonts(fonts)
        cells = [cell for row in layout.detail_rows for cell in row.cells]

        widest_word = max(
            (pdfmetrics.stringWidth(word, fonts.bold, CAPTION_FONT_SIZE)
             for cell in cells for word in cell.label.split()),
            default=0.0
        )
        label_width = max(float(MIN_CAPTION_WIDTH), widest_word + CAPTION_PADDING)
        lines = {
            cell.field: wrap_text(
                cell.label, fonts.bold, CAPTION_FONT_SIZE,
                label_width - CAPTION_PADDING, CAPTION_MAX_LINES
            )
            for cell in cells
        }
        return label_width, lines

    def _register_fonts(self, fonts: FontSpec) -> None:
        if not fonts.cid:
            return
        registered = pdfmetrics.getRegisteredFontNames()
        for name in {fonts.regular, fonts.bold}:
            if name not in registered:
                pdfmetrics.registerFont(UnicodeCIDFont(name))
                logger.debug(f"Registered CID font {name}")

    def _draw_lines(self, can, lines: List[str], font: str, size: float, x: float, y: float, leading: float) -> float:
        can.setFont(font, size)
        for line in lines:
            can.drawString(x, y, line)
            y -= leading
        return y

    def _draw_header(self, can, layout: DocumentLayout, fonts: FontSpec, x: float, top: float, width: float) -> float:
        header = layout.header
        primary = self._palette["primary"]

        price_width = width * 0.36
        title_width = width - price_width - 10

        can.setFillColor(primary)
        title_lines = wrap_text(
            header.title, fonts.bold, 22, title_width,
            self.config.limit_for("property_name").max_lines
        )
        y = self._draw_lines(can, title_lines, fonts.bold, 22, x, top - 22, 25)

        can.setFillColor(self._palette["muted"])
        can.setFont(fonts.regular, 10)
        can.drawString(x, y - 2, header.tagline)
        bottom = y - 12

        can.setFont(fonts.regular, 9)
        can.drawRightString(x + width, top - 12, header.price_label)
        can.setFillColor(self._palette["accent"])
        price = wrap_text(header.price, fonts.bold, 20, price_width, 1)
        can.setFont(fonts.bold, 20)
        can.drawRightString(x + width, top - 36, price[0] if price else self.config.placeholder)

        can.setStrokeColor(primary)
        can.setLineWidth(3)
        can.line(x, bottom, x + width, bottom)
        can.setFillColor(colors.black)
        return bottom

    def _draw_left_column(
        self, can, layout: DocumentLayout, fonts: FontSpec,
        source_image: Optional[SourceImage], x: float, top: float, width: float, bottom: float
    ) -> None:
        image_height = width * 3 / 4
        image_y = top - image_height

        can.setStrokeColor(self._palette["border"])
        can.setLineWidth(0.8)
        can.setFillColor(self._palette["panel"])
        can.rect(x, image_y, width, image_height, stroke=1, fill=1)

        if source_image is not None:
            can.drawImage(
                ImageReader(io.BytesIO(source_image.data)),
                x + 2, image_y + 2, width - 4, image_height - 4,
                preserveAspectRatio=True, anchor='c', mask='auto'
            )
        can.setFillColor(self._palette["muted"])
        can.setFont(fonts.regular, 7)
        can.drawString(x, image_y - 9, layout.image_caption)

        y = image_y - 18
        for block, limit_name in ((layout.description, "description"), (layout.facilities, "facilities")):
            max_lines = self.config.limit_for(limit_name).max_lines
            lines = wrap_text(block.text, fonts.regular, 9, width - 16, max_lines)
            panel_height = 22 + 12 * max(len(lines), 1) + 6
            if y - panel_height < bottom:
                break
            can.setFillColor(self._palette["panel"])
            can.setStrokeColor(self._palette["border"])
            can.rect(x, y - panel_height, width, panel_height, stroke=1, fill=1)

            can.setFillColor(self._palette["primary"])
            can.setFont(fonts.bold, 10)
            can.drawString(x + 8, y - 15, block.label)
            can.setFillColor(colors.black)
            self._draw_lines(can, lines, fonts.regular, 9, x + 8, y - 30, 12)
            y -= panel_height + 8

    def _draw_right_column(
        self, can, layout: DocumentLayout, fonts: FontSpec,
        x: float, top: float, width: float, bottom: float
    ) -> None:
        label_width, captions = self.caption_lines(layout)
        leading = 11
        y = top
        can.setLineWidth(0.6)

        for row in layout.detail_rows:
            cell_width = width / len(row.cells)
            wrapped = []
            for cell in row.cells:
                limit = self.config.limit_for(cell.field)
                wrapped.append(wrap_text(cell.value, fonts.regular, 8.5, cell_width - label_width - 8, limit.max_lines))
            row_height = max(
                6 + leading * max(max(len(lines) for lines in wrapped), 1),
                6 + CAPTION_LEADING * max(len(captions[cell.field]) for cell in row.cells)
            )

            for index, (cell, lines) in enumerate(zip(row.cells, wrapped)):
                cx = x + index * cell_width
                can.setStrokeColor(self._palette["border"])
                can.setFillColor(self._palette["primary"])
                can.rect(cx, y - row_height, label_width, row_height, stroke=1, fill=1)
                can.setFillColor(colors.white)
                can.setFont(fonts.bold, CAPTION_FONT_SIZE)
                caption = captions[cell.field]
                ly = y - row_height / 2 - 2.5 + CAPTION_LEADING * (len(caption) - 1) / 2
                for line in caption:
                    can.drawCentredString(cx + label_width / 2, ly, line)
                    ly -= CAPTION_LEADING

                can.setFillColor(colors.white)
                can.rect(cx + label_width, y - row_height, cell_width - label_width, row_height, stroke=1, fill=1)
                can.setFillColor(colors.black)
                self._draw_lines(can, lines, fonts.regular, 8.5, cx + label_width + 4, y - 11, leading)
            y -= row_height

        # Feature grid
        y -= 18
        if y - 14 < bottom:
            return
        can.setFillColor(self._palette["primary"])
        can.setFont(fonts.bold, 11)
        can.drawString(x, y, layout.features_label)
        can.setStrokeColor(self._palette["border"])
        can.setLineWidth(1.5)
        can.line(x, y - 3, x + width, y - 3)
        y -= 16

        columns = max(self.config.feature_columns, 1)
        column_width = width / columns
        can.setFillColor(colors.black)
        for index, feature in enumerate(layout.features):
            row, column = divmod(index, columns)
            fy = y - row * 14
            if fy < bottom:
                break
            fx = x + column * column_width
            can.setFillColor(self._palette["primary"])
            can.circle(fx + 3, fy + 3, 1.6, stroke=0, fill=1)
            can.setFillColor(colors.black)
            text = wrap_text(feature, fonts.regular, 8.5, column_width - 12, 1)
            can.setFont(fonts.regular, 8.5)
            can.drawString(fx + 9, fy, text[0] if text else "")

    def _draw_footer(
        self, can, layout: DocumentLayout, fonts: FontSpec,
        x: float, y: float, width: float, height: float
    ) -> None:
        issuer = layout.footer.issuer
        labels = layout.footer.labels
        primary = self._palette["primary"]

        side_width = 120
        box_width = width - side_width - 8

        can.setStrokeColor(self._palette["border"])
        can.setLineWidth(1.5)
        can.line(x, y + height + 6, x + width, y + height + 6)

        can.setStrokeColor(primary)
        can.setLineWidth(1.5)
        can.rect(x, y, box_width, height, stroke=1, fill=0)

        # Monogram
        can.setFillColor(primary)
        can.rect(x + 8, y + height - 52, 44, 44, stroke=0, fill=1)
        can.setFillColor(colors.white)
        can.setFont("Helvetica-Bold", 26)
        can.drawCentredString(x + 30, y + height - 39, issuer.website.replace("www.", "")[:1].upper() or "S")

        info_x = x + 60
        info_width = box_width * 0.5 - 60
        can.setFillColor(primary)
        name = wrap_text(issuer.organization, fonts.bold, 14, info_width, 1)
        can.setFont(fonts.bold, 14)
        can.drawString(info_x, y + height - 20, name[0] if name else "")
        can.setFillColor(self._palette["muted"])
        credentials = []
        for text in (issuer.license_number, issuer.guarantee_association, issuer.member_association):
            credentials.extend(wrap_text(text, fonts.regular, 6.5, info_width, 2))
        self._draw_lines(can, credentials[:6], fonts.regular, 6.5, info_x, y + height - 34, 8.5)

        contact_x = x + box_width * 0.5 + 4
        contact_width = box_width * 0.5 - 12
        address = f"{issuer.postal_code} " + " ".join(issuer.address_lines)
        contacts = [
            f"{labels['tel']}: {issuer.phone}",
            f"{labels['fax']}: {issuer.fax}",
            f"{labels['email']}: {issuer.email}",
            f"{labels['web']}: {issuer.website}",
        ]
        contacts.extend(wrap_text(f"{labels['address']}: {address}", fonts.regular, 7, contact_width, 3))
        can.setFillColor(colors.black)
        self._draw_lines(can, contacts, fonts.regular, 7, contact_x, y + height - 16, 9.5)

        # Transaction / advertising boxes
        side_x = x + box_width + 8
        box_height = (height - 6) / 2
        for index, (label, text) in enumerate((
            (labels['transaction_mode'], issuer.transaction_mode),
            (labels['advertising'], issuer.advertising),
        )):
            by = y + height - (index + 1) * box_height - index * 6
            can.setStrokeColor(self._palette["border"])
            can.setLineWidth(0.8)
            can.setFillColor(self._palette["panel"])
            can.rect(side_x, by, side_width, box_height, stroke=1, fill=1)
            can.setFillColor(self._palette["muted"])
            can.setFont(fonts.bold, 6.5)
            can.drawString(side_x + 5, by + box_height - 11, label)
            can.setFillColor(colors.black)
            value = wrap_text(text, fonts.regular, 8, side_width - 10, 1)
            can.setFont(fonts.regular, 8)
            can.drawString(side_x + 5, by + 8, value[0] if value else "")
