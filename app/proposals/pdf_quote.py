"""
Quote (devis) PDF: header, client block, itemized table, totals and signature box.
"""
import base64
import binascii
import io
from datetime import date, datetime
from typing import Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.platypus import (
    BaseDocTemplate, Paragraph, Spacer, Frame, PageTemplate, Flowable, KeepTogether,
    Table, TableStyle
)
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from PIL import Image, UnidentifiedImageError
import structlog

from ..services.line_items import LineItem
from ..services.pricing import QuoteTotals


logger = structlog.get_logger(__name__)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
INK = colors.HexColor("#111827")
MUTED = colors.HexColor("#6b7280")
RULE = colors.HexColor("#e5e7eb")

MARGIN = 48
CONTENT_WIDTH = A4[0] - 2 * MARGIN
COL_WIDTHS = [CONTENT_WIDTH - 250, 60, 95, 95]

SIGNATURE_BOX_W = 220
SIGNATURE_BOX_H = 80
SIGNATURE_PADDING = 8

_MONTHS_FR = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


def format_currency(value: float) -> str:
    """1234.5 -> "1 234,50 €" with no-break spaces, so amounts stay on one line."""
    text = f"{float(value or 0):,.2f}"
    return text.replace(",", "\u00a0").replace(".", ",") + "\u00a0€"


def format_date_long(value) -> str:
    if value is None:
        value = date.today()
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.day} {_MONTHS_FR[value.month - 1]} {value.year}"


def decode_signature_image(data: Optional[str]) -> Optional[ImageReader]:
    """Decode a base64 payload (optionally a data URL) into something drawImage accepts."""
    if not data:
        return None
    payload = data.partition(",")[2] if data.startswith("data:") else data
    try:
        raw = base64.b64decode(payload, validate=False)
        with Image.open(io.BytesIO(raw)) as im:
            im.load()
            # Flatten transparency onto white so the stroke stays visible
            if im.mode in ("RGBA", "LA", "P"):
                im = im.convert("RGBA")
                bg = Image.new("RGB", im.size, (255, 255, 255))
                bg.paste(im, mask=im.split()[-1])
                im = bg
            buf = io.BytesIO()
            im.save(buf, format="PNG")
        buf.seek(0)
        return ImageReader(buf)
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning("signature_image_unreadable", error=str(e))
        return None


class SignatureBox(Flowable):
    """Fixed-size bordered box with the signer's image and name."""

    def __init__(self, image: Optional[ImageReader], signer_name: Optional[str]):
        super().__init__()
        self.image = image
        self.signer_name = signer_name
        self.width = SIGNATURE_BOX_W
        self.height = SIGNATURE_BOX_H + (16 if signer_name else 0)

    def draw(self):
        c = self.canv
        box_y = self.height - SIGNATURE_BOX_H
        c.setStrokeColor(RULE)
        c.setLineWidth(1)
        c.rect(0, box_y, SIGNATURE_BOX_W, SIGNATURE_BOX_H, stroke=1, fill=0)
        if self.image is not None:
            c.drawImage(
                self.image,
                SIGNATURE_PADDING,
                box_y + SIGNATURE_PADDING,
                width=SIGNATURE_BOX_W - 2 * SIGNATURE_PADDING,
                height=SIGNATURE_BOX_H - 2 * SIGNATURE_PADDING,
                preserveAspectRatio=True,
                mask="auto",
            )
        if self.signer_name:
            c.setFont(FONT, 9)
            c.setFillColor(MUTED)
            c.drawString(0, 2, f"Signé par : {self.signer_name}")


def _styles():
    styles = getSampleStyleSheet()
    return {
        "company": ParagraphStyle("Company", parent=styles["Normal"], fontName=FONT_BOLD, fontSize=18, leading=22, textColor=INK),
        "muted": ParagraphStyle("Muted", parent=styles["Normal"], fontName=FONT, fontSize=10, leading=13, textColor=MUTED),
        "title": ParagraphStyle("Title", parent=styles["Normal"], fontName=FONT_BOLD, fontSize=16, leading=20, textColor=INK, alignment=TA_RIGHT),
        "muted_right": ParagraphStyle("MutedRight", parent=styles["Normal"], fontName=FONT, fontSize=10, leading=13, textColor=MUTED, alignment=TA_RIGHT),
        "heading": ParagraphStyle("Heading", parent=styles["Normal"], fontName=FONT_BOLD, fontSize=11, leading=14, textColor=INK, spaceAfter=4),
        "body": ParagraphStyle("Body", parent=styles["Normal"], fontName=FONT, fontSize=10, leading=13, textColor=INK),
        "cell": ParagraphStyle("Cell", parent=styles["Normal"], fontName=FONT, fontSize=9, leading=11, textColor=INK),
        "section": ParagraphStyle("Section", parent=styles["Normal"], fontName=FONT, fontSize=9, leading=11, textColor=MUTED),
    }


def _header(quote_ref: str, company: dict, issue_date, st) -> Table:
    left = [Paragraph(escape(company.get("name") or ""), st["company"])]
    if company.get("address"):
        left.append(Paragraph(escape(company["address"]), st["muted"]))
    if company.get("phone"):
        left.append(Paragraph(escape(f"Tél : {company['phone']}"), st["muted"]))
    if company.get("email"):
        left.append(Paragraph(escape(f"Email : {company['email']}"), st["muted"]))
    right = [
        Paragraph("Devis", st["title"]),
        Paragraph(f"Réf. devis : {quote_ref}", st["muted_right"]),
        Paragraph(f"Date de devis : {format_date_long(issue_date)}", st["muted_right"]),
    ]
    t = Table([[left, right]], colWidths=[CONTENT_WIDTH * 0.6, CONTENT_WIDTH * 0.4])
    t.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
    ]))
    return t


def _client_block(client: dict, st) -> list:
    block = [Paragraph("<u>Adressé à :</u>", st["heading"]), Paragraph(escape(client.get("name") or ""), st["body"])]
    if client.get("address"):
        block.append(Paragraph(escape(client["address"]), st["body"]))
    if client.get("phone"):
        block.append(Paragraph(escape(f"Tél : {client['phone']}"), st["body"]))
    if client.get("email"):
        block.append(Paragraph(escape(f"Email : {client['email']}"), st["body"]))
    return block


def _items_table(items: Sequence[LineItem], st) -> Table:
    rows = [["Description", "Qté", "Prix Unitaire", "Prix HT"]]
    style = [
        ("FONTNAME", (0, 0), (-1, 0), FONT),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TEXTCOLOR", (0, 0), (-1, 0), MUTED),
        ("LINEBELOW", (0, 0), (-1, 0), 0.75, RULE),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 2),
        ("RIGHTPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]
    for item in items:
        r = len(rows)
        if item.is_section:
            rows.append([Paragraph(f"<u>{escape(item.label.upper())}</u>", st["section"]), "", "", ""])
            style.append(("LINEBELOW", (0, r), (-1, r), 0.5, RULE))
            style.append(("TOPPADDING", (0, r), (-1, r), 8))
            continue
        rows.append([
            Paragraph(escape(item.label), st["cell"]),
            item.quantity,
            format_currency(item.unit_price),
            format_currency(item.total),
        ])
    t = Table(rows, colWidths=COL_WIDTHS, repeatRows=1)
    t.setStyle(TableStyle(style))
    return t


def _totals_table(totals: QuoteTotals) -> Table:
    rows = [["Total HT", format_currency(totals.subtotal)]]
    if totals.discount and totals.discount > 0:
        rows.append([f"Remise ({totals.discount:g}%)", f"- {format_currency(totals.discount_amount)}"])
    rows.append([f"TVA {totals.tax_rate:g}%", format_currency(totals.tax)])
    rows.append(["Total TTC", format_currency(totals.total)])
    t = Table(rows, colWidths=[130, 95], hAlign="RIGHT")
    t.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -2), FONT),
        ("FONTSIZE", (0, 0), (-1, -2), 10),
        ("FONTNAME", (0, -1), (-1, -1), FONT_BOLD),
        ("FONTSIZE", (0, -1), (-1, -1), 11),
        ("TEXTCOLOR", (0, 0), (-1, -1), INK),
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("LINEABOVE", (0, 0), (-1, 0), 0.75, RULE),
        ("TOPPADDING", (0, 0), (-1, 0), 8),
    ]))
    return t


def _draw_page_footer(c, doc, quote_ref: str):
    c.saveState()
    c.setFont(FONT, 8)
    c.setFillColor(MUTED)
    c.drawRightString(A4[0] - MARGIN, MARGIN / 2, f"{quote_ref} - page {doc.page}")
    c.restoreState()


def build_quote_pdf(
    quote_ref: str,
    client: dict,
    company: dict,
    items: Sequence[LineItem],
    totals: QuoteTotals,
    signature: Optional[dict] = None,
) -> bytes:
    """Render the quote and return the PDF bytes.

    signature: optional {"name": ..., "data": "data:image/png;base64,..."}
    """
    st = _styles()
    buf = io.BytesIO()
    doc = BaseDocTemplate(
        buf, pagesize=A4,
        leftMargin=MARGIN, rightMargin=MARGIN, topMargin=MARGIN, bottomMargin=MARGIN,
        title=f"Devis {quote_ref}", author=company.get("name") or "",
    )
    frame = Frame(doc.leftMargin, doc.bottomMargin, doc.width, doc.height, id="normal")
    doc.addPageTemplates([
        PageTemplate(id="quote", frames=[frame], onPage=lambda c, d: _draw_page_footer(c, d, quote_ref))
    ])

    story = [
        _header(quote_ref, company, totals.date, st),
        Spacer(1, 28),
        *_client_block(client, st),
        Spacer(1, 24),
        Paragraph("<u>Description</u>", st["heading"]),
        Spacer(1, 4),
        _items_table(items, st),
        Spacer(1, 16),
        _totals_table(totals),
        Spacer(1, 28),
    ]

    signature = signature or {}
    image = decode_signature_image(signature.get("data"))
    story.append(KeepTogether([
        Paragraph("Signature du client", st["body"]),
        Spacer(1, 6),
        SignatureBox(image, signature.get("name")),
    ]))

    doc.build(story)
    return buf.getvalue()
