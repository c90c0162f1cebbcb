# facturier/pdf/renderer.py
"""
Rendu PDF (A4, portrait) d'une facture à partir du plan de pagination.

Les cotes viennent de `layout` en mm depuis le haut de la page ; reportlab
travaille depuis le bas, d'où `_y()`.
"""
from __future__ import annotations
import io
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from facturier.config import AppConfig
from facturier.models.invoice import Invoice
from facturier.models.party import ClientInfo, CompanyInfo
from facturier.pdf.images import prepare_logo
from facturier.pdf.layout import (
    LEGAL_LINE_HEIGHT, LEGAL_OFFSET, PAYMENT_DETAILS_OFFSET, PAYMENT_ROW_STEP, PAYMENT_VALUE_OFFSET,
    LayoutMetrics, LayoutPlan, PagePlan, PaginationError, paginate,
)
from facturier.storage.images import ImageSource
from facturier.utils.dates import format_date
from facturier.utils.formatting import format_iban, format_money, format_phone, format_quantity, format_siret

log = logging.getLogger(__name__)

PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
MARGIN = 20
CONTENT_WIDTH = PAGE_WIDTH_MM - 2 * MARGIN
LOGO_SIZE = 20
FOOTER_Y = 285

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

TEXT = colors.Color(0.12, 0.16, 0.23)
MUTED = colors.Color(100 / 255, 116 / 255, 139 / 255)
ACCENT = colors.Color(37 / 255, 99 / 255, 235 / 255)
HEADER_FILL = colors.Color(248 / 255, 250 / 255, 252 / 255)
BORDER = colors.Color(200 / 255, 200 / 255, 200 / 255)
PLACEHOLDER_FILL = colors.Color(0.25, 0.25, 0.25)

LEGAL_NOTICE = (
    "Pour tout professionnel, en cas de retard de paiement, seront exigibles, "
    "conformément à l'article L 441-6 du code de commerce,",
    "une indemnité calculée sur la base de trois fois le taux de l'intérêt légal "
    "en vigueur ainsi qu'une indemnité forfaitaire pour frais",
    "de recouvrement de 40 euros. - TVA non applicable, art. 293B du CGI.",
)


class RenderedDocument(BaseModel):
    filename: str
    content: bytes
    page_count: int


def _x(x_mm: float) -> float:
    return x_mm * mm


def _y(top_mm: float) -> float:
    return (PAGE_HEIGHT_MM - top_mm) * mm


class InvoicePdfRenderer:
    def __init__(self, config: AppConfig, images: ImageSource, metrics: Optional[LayoutMetrics] = None):
        self.config = config
        self.images = images
        self.metrics = metrics or LayoutMetrics()

    # ----------- API -----------

    def render(self, invoice: Invoice) -> RenderedDocument:
        plan = paginate(invoice.articles, self.metrics)
        logo = self._resolve_logo(invoice.company_info)

        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=A4)
        c.setTitle(f"Facture {invoice.invoice_number}")
        c.setAuthor(invoice.company_info.display_name or "")

        for page in plan.pages:
            if page.number > 1:
                c.showPage()
            self._draw_page(c, invoice, plan, page, logo)

        emitted = c.getPageNumber()
        c.showPage()
        c.save()

        if emitted != plan.total_pages:
            raise PaginationError(f"{emitted} page(s) émise(s) pour {plan.total_pages} annoncée(s)")

        log.info("PDF %s rendu (%d page(s))", invoice.invoice_number, plan.total_pages)
        return RenderedDocument(filename=invoice.pdf_filename, content=buf.getvalue(), page_count=plan.total_pages)

    def export(self, invoice: Invoice, out_dir: Optional[Union[str, Path]] = None) -> Path:
        doc = self.render(invoice)
        exports_dir = Path(out_dir) if out_dir else self.config.export_dir
        exports_dir.mkdir(parents=True, exist_ok=True)
        out_path = exports_dir / doc.filename
        out_path.write_bytes(doc.content)
        return out_path

    # ----------- Logo -----------

    def _resolve_logo(self, company: CompanyInfo) -> Optional[ImageReader]:
        """Logo utilisateur, sinon logo fourni, sinon None (pastille dessinée)."""
        if company.logo_url:
            try:
                raw = self.images.load_image(company.logo_url)
                return ImageReader(io.BytesIO(prepare_logo(raw, self.config.logo_max_size)))
            except Exception as e:
                log.warning("Logo utilisateur indisponible (%s) : %s", company.logo_url, e)

        default = self.config.default_logo_path
        if default:
            try:
                raw = Path(default).read_bytes()
                return ImageReader(io.BytesIO(prepare_logo(raw, self.config.logo_max_size)))
            except Exception as e:
                log.warning("Logo par défaut indisponible (%s) : %s", default, e)
        return None

    def _draw_placeholder(self, c: canvas.Canvas, company: CompanyInfo, x: float, y: float) -> None:
        r = LOGO_SIZE / 2
        c.setFillColor(PLACEHOLDER_FILL)
        c.circle(_x(x + r), _y(y + r), r * mm, stroke=0, fill=1)
        initial = (company.display_name or "?")[:1].upper()
        c.setFillColor(colors.white)
        c.setFont(FONT_BOLD, 20)
        c.drawCentredString(_x(x + r), _y(y + r + 2.5), initial)

    # ----------- Pages -----------

    def _draw_page(self, c: canvas.Canvas, invoice: Invoice, plan: LayoutPlan,
                   page: PagePlan, logo: Optional[ImageReader]) -> None:
        if page.number == 1:
            self._draw_header(c, invoice, logo)
            self._draw_client(c, invoice.client_info)
            self._draw_dates(c, invoice)
        if page.has_table:
            self._draw_table(c, invoice, page)
        if page.summary_y is not None:
            self._draw_summary(c, invoice, page.summary_y)
        if page.payment_y is not None:
            self._draw_payment(c, invoice.company_info, page.payment_y)
        self._draw_footer(c, page.number, plan.total_pages)

    def _draw_header(self, c: canvas.Canvas, invoice: Invoice, logo: Optional[ImageReader]) -> None:
        company = invoice.company_info
        top = 25
        if logo is not None:
            c.drawImage(logo, _x(MARGIN), _y(top + LOGO_SIZE), LOGO_SIZE * mm, LOGO_SIZE * mm,
                        preserveAspectRatio=True, mask="auto")
        else:
            self._draw_placeholder(c, company, MARGIN, top)

        x = MARGIN + 25
        c.setFillColor(TEXT)
        c.setFont(FONT_BOLD, 14)
        c.drawString(_x(x), _y(top + 4), company.display_name)

        c.setFont(FONT, 10)
        c.setFillColor(MUTED)
        c.drawString(_x(x), _y(top + 10), company.address)
        contact = " | ".join(p for p in (format_phone(company.phone), company.email or "") if p)
        c.drawString(_x(x), _y(top + 15), contact)
        if company.siret:
            c.drawString(_x(x), _y(top + 20), f"SIRET: {format_siret(company.siret)}")

        c.setFillColor(TEXT)
        c.setFont(FONT_BOLD, 14)
        c.drawRightString(_x(PAGE_WIDTH_MM - MARGIN), _y(top + 5), f"Facture #{invoice.invoice_number}")

        c.setFont(FONT_BOLD, 28)
        c.drawString(_x(MARGIN), _y(60), "Facture")

    def _draw_client(self, c: canvas.Canvas, client: ClientInfo) -> None:
        c.setFont(FONT_BOLD, 12)
        c.setFillColor(ACCENT)
        c.drawString(_x(MARGIN), _y(75), "Adresse de facturation")

        c.setFillColor(TEXT)
        c.setFont(FONT_BOLD, 10)
        c.drawString(_x(MARGIN), _y(83), client.full_name)
        c.setFont(FONT, 10)
        lines = [
            f"À l'attention de {client.full_name}".strip(),
            client.address,
            client.city_line,
            f"Tél: {format_phone(client.phone)}" if client.phone else "",
            f"SIRET: {format_siret(client.siret)}" if client.siret else "",
        ]
        y = 89
        for line in lines:
            if line:
                c.drawString(_x(MARGIN), _y(y), line)
            y += 6

    def _draw_dates(self, c: canvas.Canvas, invoice: Invoice) -> None:
        cols = (
            (MARGIN, "Date de facture", format_date(invoice.invoice_date)),
            (MARGIN + 37, "Date de livraison", format_date(invoice.delivery_date)),
            (MARGIN + 78, "Conditions de règlement", invoice.payment_terms),
            (MARGIN + 132, "Échéance de paiement", format_date(invoice.payment_due)),
        )
        for x, label, value in cols:
            c.setFont(FONT_BOLD, 10)
            c.setFillColor(MUTED)
            c.drawString(_x(x), _y(128), label)
            c.setFont(FONT, 10)
            c.setFillColor(TEXT)
            c.drawString(_x(x), _y(135), value)

    def _draw_table(self, c: canvas.Canvas, invoice: Invoice, page: PagePlan) -> None:
        m = self.metrics
        top = page.table_top
        header = m.table_header_height

        c.setFillColor(HEADER_FILL)
        c.rect(_x(MARGIN), _y(top + header), CONTENT_WIDTH * mm, header * mm, stroke=0, fill=1)

        c.setFillColor(MUTED)
        c.setFont(FONT_BOLD, 9)
        c.drawString(_x(MARGIN + 5), _y(top + 7), "N°")
        c.drawString(_x(MARGIN + 20), _y(top + 7), "ARTICLE")
        c.drawCentredString(_x(MARGIN + 105), _y(top + 7), "QUANTITÉ")
        c.drawRightString(_x(MARGIN + 140), _y(top + 7), "PRIX UNITÉ")
        c.drawRightString(_x(MARGIN + CONTENT_WIDTH - 5), _y(top + 7), "TOTAL")

        for row in page.rows:
            article = invoice.articles[row.index]
            y = row.y

            c.setFillColor(TEXT)
            c.setFont(FONT, 10)
            c.drawString(_x(MARGIN + 5), _y(y + 8), str(row.index + 1))
            c.setFont(FONT_BOLD, 10)
            c.drawString(_x(MARGIN + 20), _y(y + 8), article.name)

            c.setFont(FONT, 8)
            c.setFillColor(MUTED)
            for i, line in enumerate(article.description):
                c.drawString(_x(MARGIN + 20), _y(y + 12 + i * m.description_line_height), line)

            c.setFillColor(TEXT)
            c.setFont(FONT_BOLD, 10)
            c.drawCentredString(_x(MARGIN + 105), _y(y + 8), format_quantity(article.quantity))
            c.setFont(FONT, 8)
            c.setFillColor(MUTED)
            c.drawCentredString(_x(MARGIN + 105), _y(y + 12), article.unit_label)

            c.setFillColor(TEXT)
            c.setFont(FONT, 10)
            c.drawRightString(_x(MARGIN + 137), _y(y + 8), format_money(article.unit_price))
            c.setFont(FONT_BOLD, 10)
            c.drawRightString(_x(MARGIN + CONTENT_WIDTH - 5), _y(y + 8), format_money(article.total))

            c.setStrokeColor(BORDER)
            c.line(_x(MARGIN), _y(y + row.height), _x(MARGIN + CONTENT_WIDTH), _y(y + row.height))

        c.setStrokeColor(BORDER)
        c.rect(_x(MARGIN), _y(page.table_bottom), CONTENT_WIDTH * mm, (page.table_bottom - top) * mm,
               stroke=1, fill=0)

    def _draw_summary(self, c: canvas.Canvas, invoice: Invoice, y: float) -> None:
        box_x = MARGIN + CONTENT_WIDTH - 85
        c.setFillColor(HEADER_FILL)
        c.setStrokeColor(BORDER)
        c.rect(_x(box_x), _y(y - 2 + 12), 80 * mm, 12 * mm, stroke=1, fill=1)

        c.setFillColor(TEXT)
        c.setFont(FONT_BOLD, 12)
        c.drawString(_x(box_x + 5), _y(y + 6), "Total HT")
        c.drawRightString(_x(box_x + 75), _y(y + 6), format_money(invoice.articles_total()))

    def _draw_payment(self, c: canvas.Canvas, company: CompanyInfo, y: float) -> None:
        c.setFillColor(TEXT)
        c.setFont(FONT_BOLD, 11)
        c.drawString(_x(MARGIN), _y(y), "Paiement souhaité par virement bancaire")

        y += PAYMENT_DETAILS_OFFSET
        fields = (
            (MARGIN, 0, "Nom associé au compte", company.account_name),
            (MARGIN + 85, 0, "BIC", company.bic),
            (MARGIN, PAYMENT_ROW_STEP, "IBAN", format_iban(company.iban)),
            (MARGIN + 85, PAYMENT_ROW_STEP, "Nom de la banque", company.bank_name),
        )
        for x, dy, label, value in fields:
            c.setFont(FONT_BOLD, 9)
            c.setFillColor(MUTED)
            c.drawString(_x(x), _y(y + dy), label)
            c.setFont(FONT, 10)
            c.setFillColor(TEXT)
            c.drawString(_x(x), _y(y + dy + PAYMENT_VALUE_OFFSET), value)

        y += LEGAL_OFFSET
        c.setFont(FONT, 7)
        c.setFillColor(MUTED)
        for i, line in enumerate(LEGAL_NOTICE):
            c.drawString(_x(MARGIN), _y(y + i * LEGAL_LINE_HEIGHT), line)

    def _draw_footer(self, c: canvas.Canvas, number: int, total: int) -> None:
        c.setFont(FONT, 8)
        c.setFillColor(MUTED)
        if self.config.footer_notice:
            c.drawString(_x(MARGIN), _y(FOOTER_Y), self.config.footer_notice)
        c.drawRightString(_x(PAGE_WIDTH_MM - MARGIN), _y(FOOTER_Y), f"Page {number} / {total}")
