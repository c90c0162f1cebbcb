# facturier/services/editing.py
"""
Commandes de modification d'un brouillon et réducteurs purs.

Chaque commande décrit un groupe de champs ; `apply_command` renvoie un
nouvel instantané `Invoice` validé, sans jamais modifier l'original.
"""
from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from facturier.models.article import Article
from facturier.models.common import gen_id
from facturier.models.invoice import Invoice, PaymentTerms
from facturier.models.party import ClientInfo, CompanyInfo
from facturier.utils.dates import payment_due


class InvoiceLockedError(ValueError):
    """Modification demandée sur une facture finalisée."""


# ---------- Commandes ---------- #

class SetPaymentTerms(BaseModel):
    payment_terms: PaymentTerms


class SetInvoiceDate(BaseModel):
    invoice_date: date


class SetDeliveryDate(BaseModel):
    delivery_date: date


class SetInvoiceNumber(BaseModel):
    invoice_number: str = Field(pattern=r"^\d{4}-\d{2}-\d{4,}$")


class UpdateCompany(BaseModel):
    fields: Dict[str, Any]


class UpdateClient(BaseModel):
    fields: Dict[str, Any]


class AddArticle(BaseModel):
    # None -> article vierge ; sinon copie (nouvel id) d'un article du catalogue
    article: Optional[Article] = None


class UpdateArticle(BaseModel):
    article_id: str
    name: Optional[str] = None
    description: Optional[List[str]] = None
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    unit_price: Optional[Decimal] = None


class RemoveArticle(BaseModel):
    article_id: str


Command = Union[
    SetPaymentTerms, SetInvoiceDate, SetDeliveryDate, SetInvoiceNumber,
    UpdateCompany, UpdateClient, AddArticle, UpdateArticle, RemoveArticle,
]


# ---------- Réducteurs ---------- #

def new_article() -> Article:
    return Article(name="Nouvel article", description=["Description"], quantity=1, unit="Unité", unit_price=0)


def _merge_party(model, party, fields: Dict[str, Any]):
    unknown = sorted(set(fields) - set(model.model_fields))
    if unknown:
        raise ValueError(f"Champs inconnus : {', '.join(unknown)}")
    return model.model_validate({**party.model_dump(), **fields})


def update_article(article: Article, cmd: UpdateArticle) -> Article:
    changes = cmd.model_dump(exclude={"article_id"}, exclude_none=True)
    # revalidation complète : 'total' suit toujours quantité × prix
    return Article.model_validate({**article.model_dump(exclude={"total"}), **changes})


def apply_command(invoice: Invoice, cmd: Command) -> Invoice:
    if invoice.is_finalized:
        raise InvoiceLockedError(f"La facture {invoice.invoice_number} est finalisée : modification impossible")

    if isinstance(cmd, SetPaymentTerms):
        return invoice.model_copy(update={
            "payment_terms": cmd.payment_terms,
            "payment_due": payment_due(invoice.invoice_date, cmd.payment_terms),
        })

    if isinstance(cmd, SetInvoiceDate):
        return invoice.model_copy(update={
            "invoice_date": cmd.invoice_date,
            "payment_due": payment_due(cmd.invoice_date, invoice.payment_terms),
        })

    if isinstance(cmd, SetDeliveryDate):
        return invoice.model_copy(update={"delivery_date": cmd.delivery_date})

    if isinstance(cmd, SetInvoiceNumber):
        return invoice.model_copy(update={"invoice_number": cmd.invoice_number})

    if isinstance(cmd, UpdateCompany):
        return invoice.model_copy(update={"company_info": _merge_party(CompanyInfo, invoice.company_info, cmd.fields)})

    if isinstance(cmd, UpdateClient):
        return invoice.model_copy(update={"client_info": _merge_party(ClientInfo, invoice.client_info, cmd.fields)})

    if isinstance(cmd, AddArticle):
        art = cmd.article.model_copy(update={"id": gen_id()}, deep=True) if cmd.article else new_article()
        return invoice.model_copy(update={"articles": [*invoice.articles, art]})

    if isinstance(cmd, UpdateArticle):
        if not any(a.id == cmd.article_id for a in invoice.articles):
            raise ValueError(f"Article {cmd.article_id} introuvable")
        articles = [update_article(a, cmd) if a.id == cmd.article_id else a for a in invoice.articles]
        return invoice.model_copy(update={"articles": articles})

    if isinstance(cmd, RemoveArticle):
        return invoice.model_copy(update={"articles": [a for a in invoice.articles if a.id != cmd.article_id]})

    raise TypeError(f"Commande non prise en charge : {type(cmd).__name__}")
