# facturier/services/lifecycle.py
"""
Cycle de vie d'une facture : brouillon -> finalisée (état terminal).

Seules `save_draft`, `finalize` et `flush_profile` écrivent dans les stores.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from facturier.config import AppContext
from facturier.models.common import gen_id, utcnow
from facturier.models.invoice import DEFAULT_PAYMENT_TERMS, Invoice
from facturier.models.party import ClientInfo
from facturier.models.profile import UserProfile
from facturier.services.clients import (
    AddClient, ClientBook, ClientCommand, NameCheck, RemoveClient, SelectClient, apply_client_command,
    check_article_name, check_client_name,
)
from facturier.services.editing import (
    AddArticle, Command, InvoiceLockedError, SetPaymentTerms, UpdateArticle, UpdateClient, apply_command,
)
from facturier.services.numbering import NumberSuggestion, YearMonth, next_number
from facturier.storage.json_repo import StorageError
from facturier.utils.dates import payment_due

log = logging.getLogger(__name__)


class CommandResult(BaseModel):
    ok: bool
    errors: List[str] = Field(default_factory=list)
    # avertissements non bloquants (noms en double)
    warnings: List[str] = Field(default_factory=list)
    invoice: Optional[Invoice] = None


class FinalizeResult(BaseModel):
    ok: bool
    invoice: Optional[Invoice] = None
    error: Optional[str] = None
    already_finalized: bool = False


def _validation_messages(e: ValidationError) -> List[str]:
    out = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        out.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return out


class InvoiceLifecycle:
    def __init__(self, ctx: AppContext, profile: Optional[UserProfile] = None):
        self.ctx = ctx
        self.profile = profile or ctx.load_profile()
        self.clients = ClientBook.from_profile(self.profile.clients, self.profile.client_info)
        self.invoice: Optional[Invoice] = None

    # ----------- Historique / numérotation -----------

    def history(self) -> List[Invoice]:
        if not self.ctx.user_id:
            return []
        return self.ctx.history.list_invoices(self.ctx.user_id)

    def suggest_number(self, today: Optional[date] = None) -> NumberSuggestion:
        month = YearMonth.from_date(today or date.today())
        return next_number(self.history(), month)

    # ----------- Création -----------

    def create_draft(self, suggested_number: str, today: Optional[date] = None) -> Invoice:
        today = today or date.today()
        p = self.profile
        self.invoice = Invoice(
            id=gen_id(),
            user_id=self.ctx.user_id,
            invoice_number=suggested_number,
            invoice_date=today,
            delivery_date=today,
            payment_terms=DEFAULT_PAYMENT_TERMS,
            payment_due=payment_due(today, DEFAULT_PAYMENT_TERMS),
            status="draft",
            company_info=p.company_info.model_copy(deep=True),
            client_info=p.client_info.model_copy(deep=True),
            articles=[a.model_copy(deep=True) for a in p.articles],
        )
        self.clients = ClientBook.from_profile(self.clients.clients, self.invoice.client_info)
        log.info("Brouillon %s créé (%s)", self.invoice.invoice_number, self.invoice.id)
        return self.invoice

    def new_invoice(self, today: Optional[date] = None) -> NumberSuggestion:
        """
        Numéro suivant du mois + création du brouillon.
        Un brouillon existant sur le mois ne bloque rien : l'appelant affiche
        `conflict_info` s'il le souhaite.
        """
        suggestion = self.suggest_number(today)
        if suggestion.has_conflict:
            log.warning("Numérotation : %s", suggestion.conflict_info)
        self.create_draft(suggestion.number, today)
        return suggestion

    # ----------- Modifications -----------

    def apply(self, command: Union[Command, ClientCommand]) -> CommandResult:
        if isinstance(command, (AddClient, SelectClient, RemoveClient)):
            return self._apply_client(command)
        if self.invoice is None:
            return CommandResult(ok=False, errors=["Aucune facture en cours"])
        try:
            updated = apply_command(self.invoice, command)
        except ValidationError as e:
            return CommandResult(ok=False, errors=_validation_messages(e), invoice=self.invoice)
        except (InvoiceLockedError, ValueError) as e:
            return CommandResult(ok=False, errors=[str(e)], invoice=self.invoice)
        warnings = self._name_warnings(self.invoice, command, updated)
        if isinstance(command, UpdateClient):
            self.clients = self.clients.replace_current(updated.client_info)
        self.invoice = updated
        return CommandResult(ok=True, invoice=updated, warnings=warnings)

    def _name_warnings(self, before: Invoice, command: Command, after: Invoice) -> List[str]:
        checks: List[NameCheck] = []
        if isinstance(command, AddArticle):
            checks.append(check_article_name(before.articles, after.articles[-1].name))
        elif isinstance(command, UpdateArticle) and command.name is not None:
            checks.append(check_article_name(after.articles, command.name, exclude_id=command.article_id))
        elif isinstance(command, UpdateClient) and {"first_name", "last_name"} & set(command.fields):
            c = after.client_info
            checks.append(check_client_name(self.clients.clients, c.first_name, c.last_name,
                                            exclude_index=self.clients.selected))
        out = [c.duplicate_info for c in checks if c.has_duplicate]
        for msg in out:
            log.warning("Doublon : %s", msg)
        return out

    def _apply_client(self, command: ClientCommand) -> CommandResult:
        """Liste de clients du profil ; le client sélectionné devient celui de la facture en cours."""
        inv = self.invoice
        if inv is not None and inv.is_finalized:
            return CommandResult(ok=False, invoice=inv,
                                 errors=[f"La facture {inv.invoice_number} est finalisée : modification impossible"])
        try:
            book = apply_client_command(self.clients, command)
        except ValueError as e:
            return CommandResult(ok=False, errors=[str(e)], invoice=inv)

        warnings: List[str] = []
        if isinstance(command, AddClient):
            check = self.clients.check(command.client)
            if check.has_duplicate:
                log.warning("Doublon : %s", check.duplicate_info)
                warnings.append(check.duplicate_info)
        self.clients = book
        if inv is not None:
            self.invoice = inv.model_copy(update={"client_info": book.current or ClientInfo()})
        return CommandResult(ok=True, invoice=self.invoice, warnings=warnings)

    def update_payment_terms(self, terms: str) -> CommandResult:
        try:
            cmd = SetPaymentTerms(payment_terms=terms)
        except ValidationError as e:
            return CommandResult(ok=False, errors=_validation_messages(e), invoice=self.invoice)
        return self.apply(cmd)

    # ----------- Persistance -----------

    def _profile_snapshot(self) -> UserProfile:
        inv = self.invoice
        if inv is None:
            return self.profile.model_copy(update={"clients": list(self.clients.clients), "updated_at": utcnow()})
        return self.profile.model_copy(update={
            "user_id": self.ctx.user_id or self.profile.user_id,
            "company_info": inv.company_info,
            "client_info": inv.client_info,
            "articles": list(inv.articles),
            "clients": list(self.clients.remember(inv.client_info).clients),
            "updated_at": utcnow(),
        }, deep=True)

    def flush_profile(self) -> bool:
        if not self.ctx.user_id:
            return False
        snapshot = self._profile_snapshot()
        if not self.ctx.profiles.save_profile(snapshot):
            return False
        self.profile = snapshot
        self.clients = ClientBook.from_profile(snapshot.clients, snapshot.client_info)
        return True

    def save_draft(self) -> CommandResult:
        inv = self.invoice
        if inv is None or not inv.id:
            return CommandResult(ok=False, errors=["Aucune facture en cours"])
        if inv.is_finalized:
            return CommandResult(ok=False, errors=["Facture déjà finalisée"], invoice=inv)
        if not self.ctx.user_id:
            return CommandResult(ok=False, errors=["Utilisateur non connecté"], invoice=inv)
        try:
            self.ctx.history.upsert_invoice(inv)
        except StorageError as e:
            log.error("Sauvegarde du brouillon %s impossible : %s", inv.invoice_number, e)
            return CommandResult(ok=False, errors=[f"Erreur de sauvegarde : {e}"], invoice=inv)
        return CommandResult(ok=True, invoice=inv)

    def finalize(self) -> FinalizeResult:
        inv = self.invoice
        if inv is None or not inv.id:
            return FinalizeResult(ok=False, error="Aucune facture en cours. Veuillez créer une nouvelle facture.")
        if not self.ctx.user_id:
            return FinalizeResult(ok=False, invoice=inv, error="Utilisateur non connecté.")
        if inv.is_finalized:
            # au plus une finalisation : second appel sans effet
            return FinalizeResult(ok=False, invoice=inv, already_finalized=True,
                                  error=f"La facture {inv.invoice_number} est déjà finalisée.")

        try:
            taken = any(
                other.is_finalized and other.invoice_number == inv.invoice_number and other.id != inv.id
                for other in self.history()
            )
        except StorageError as e:
            return FinalizeResult(ok=False, invoice=inv, error=f"Historique indisponible : {e}")
        if taken:
            return FinalizeResult(ok=False, invoice=inv,
                                  error=f"Le numéro {inv.invoice_number} est déjà attribué à une facture finalisée.")

        log.info("Sauvegarde du profil avant finalisation de %s", inv.invoice_number)
        if not self.flush_profile() and self.ctx.config.persistence_required:
            return FinalizeResult(ok=False, invoice=inv,
                                  error="Impossible de sauvegarder les informations. Finalisation annulée.")

        now = utcnow()
        finalized = inv.model_copy(update={
            "user_id": self.ctx.user_id,
            "company_info": inv.company_info.model_copy(deep=True),
            "client_info": inv.client_info.model_copy(deep=True),
            "articles": [a.model_copy(deep=True) for a in inv.articles],
            "total_amount": inv.articles_total(),
            "status": "finalized",
            "finalized_at": now,
        })
        try:
            self.ctx.history.upsert_invoice(finalized)
        except StorageError as e:
            log.error("Finalisation de %s non enregistrée : %s", inv.invoice_number, e)
            return FinalizeResult(ok=False, invoice=inv, error=f"Erreur de sauvegarde : {e}")

        self.invoice = finalized
        log.info("Facture %s finalisée (%s)", finalized.invoice_number, finalized.total_amount)
        return FinalizeResult(ok=True, invoice=finalized)

    # ----------- Réutilisation -----------

    def load_as_template(self, saved: Invoice) -> Invoice:
        """
        Copie de travail éditable d'une facture enregistrée (quel que soit son statut).
        Pas d'identité ni de nouveau numéro : appeler `assign_fresh_number` avant de finaliser.
        """
        self.invoice = Invoice(
            id=None,
            user_id=self.ctx.user_id,
            invoice_number=saved.invoice_number,
            invoice_date=saved.invoice_date,
            delivery_date=saved.delivery_date,
            payment_terms=saved.payment_terms,
            payment_due=saved.payment_due,
            status="draft",
            company_info=saved.company_info.model_copy(deep=True),
            client_info=saved.client_info.model_copy(deep=True),
            articles=[a.model_copy(deep=True) for a in saved.articles],
        )
        self.clients = ClientBook.from_profile(self.clients.clients, self.invoice.client_info)
        return self.invoice

    def assign_fresh_number(self, today: Optional[date] = None) -> NumberSuggestion:
        if self.invoice is None:
            raise InvoiceLockedError("Aucune facture en cours")
        if self.invoice.is_finalized:
            raise InvoiceLockedError(f"La facture {self.invoice.invoice_number} est finalisée")
        suggestion = self.suggest_number(today)
        self.invoice = self.invoice.model_copy(update={
            "id": self.invoice.id or gen_id(),
            "invoice_number": suggestion.number,
        })
        return suggestion
