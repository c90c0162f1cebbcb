# facturier/services/preview.py
"""Aperçu HTML d'une facture (Jinja2 : templates/invoice.html)."""
from __future__ import annotations
from pathlib import Path
from typing import Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from facturier.models.invoice import Invoice
from facturier.pdf.renderer import LEGAL_NOTICE
from facturier.utils.dates import format_date
from facturier.utils.formatting import format_iban, format_money, format_phone, format_quantity, format_siret

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


class InvoicePreview:
    def __init__(self, templates_dir: Union[str, Path] = TEMPLATES_DIR, footer_notice: str = ""):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.footer_notice = footer_notice

    def _context(self, inv: Invoice) -> dict:
        company = inv.company_info
        client = inv.client_info
        return {
            "invoice": {
                "number": inv.invoice_number,
                "status": inv.status,
                "invoice_date": format_date(inv.invoice_date),
                "delivery_date": format_date(inv.delivery_date),
                "payment_terms": inv.payment_terms,
                "payment_due": format_date(inv.payment_due),
                "lines": [
                    {
                        "position": i,
                        "name": a.name,
                        "description": a.description,
                        "quantity": format_quantity(a.quantity),
                        "unit": a.unit_label,
                        "unit_price": format_money(a.unit_price),
                        "total": format_money(a.total),
                    } for i, a in enumerate(inv.articles, start=1)
                ],
                "total": format_money(inv.articles_total()),
            },
            "company": {
                "name": company.display_name,
                "address": company.address,
                "phone": format_phone(company.phone),
                "email": company.email or "",
                "siret": format_siret(company.siret),
                "account_name": company.account_name,
                "bic": company.bic,
                "iban": format_iban(company.iban),
                "bank_name": company.bank_name,
            },
            "client": {
                "name": client.full_name,
                "address": client.address,
                "city_line": client.city_line,
                "phone": format_phone(client.phone),
                "siret": format_siret(client.siret),
            },
            "legal_notice": LEGAL_NOTICE,
            "footer_notice": self.footer_notice,
        }

    def render_html(self, inv: Invoice) -> str:
        tpl = self.env.get_template("invoice.html")
        return tpl.render(**self._context(inv))

    def write_html(self, inv: Invoice, out_path: Optional[Union[str, Path]] = None) -> Path:
        path = Path(out_path) if out_path else Path(f"facture-{inv.invoice_number}.html")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_html(inv), encoding="utf-8")
        return path
