from __future__ import annotations
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .article import Article
from .common import utcnow
from .party import ClientInfo, CompanyInfo
from facturier.utils.dates import parse_date

InvoiceStatus = Literal["draft", "finalized"]
PaymentTerms = Literal["10 jours à réception", "20 jours à réception", "30 jours à réception"]

PAYMENT_TERMS = get_args(PaymentTerms)
DEFAULT_PAYMENT_TERMS: PaymentTerms = "30 jours à réception"


class Invoice(BaseModel):
    # instantané immuable : toute modification passe par un nouveau modèle
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    invoice_number: str
    invoice_date: date
    delivery_date: date
    payment_terms: PaymentTerms = DEFAULT_PAYMENT_TERMS
    payment_due: date
    status: InvoiceStatus = "draft"

    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    client_info: ClientInfo = Field(default_factory=ClientInfo)
    articles: List[Article] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")

    created_at: datetime = Field(default_factory=utcnow)
    finalized_at: Optional[datetime] = None

    @field_validator("invoice_date", "delivery_date", "payment_due", mode="before")
    @classmethod
    def _fr_dates(cls, v):
        # l'historique stocke parfois 'jj/mm/aaaa'
        if isinstance(v, str):
            return parse_date(v) or v
        return v

    @field_validator("created_at", "finalized_at", mode="after")
    @classmethod
    def _utc(cls, v):
        # anciens enregistrements sans fuseau : considérés comme UTC
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def is_finalized(self) -> bool:
        return self.status == "finalized"

    def articles_total(self) -> Decimal:
        return sum((a.total for a in self.articles), Decimal("0"))

    @property
    def pdf_filename(self) -> str:
        return f"facture-{self.invoice_number}.pdf"
