from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Union

from pydantic import ValidationError

from facturier.models.invoice import Invoice
from facturier.models.profile import UserProfile
from facturier.storage.json_repo import JsonRepository, StorageError

log = logging.getLogger(__name__)


class HistoryStore(Protocol):
    def list_invoices(self, user_id: str) -> List[Invoice]: ...

    def get_invoice(self, user_id: str, invoice_id: str) -> Optional[Invoice]: ...

    def upsert_invoice(self, invoice: Invoice) -> None: ...


class ProfileStore(Protocol):
    def load_profile(self, user_id: str) -> Optional[UserProfile]: ...

    def save_profile(self, profile: UserProfile) -> bool: ...


class JsonHistoryStore:
    """Historique des factures (data/invoices.json), filtré par utilisateur."""

    def __init__(self, path: Union[str, Path]):
        self.repo = JsonRepository(path, entity_name="invoice", key="id")

    def list_invoices(self, user_id: str) -> List[Invoice]:
        out: List[Invoice] = []
        for d in self.repo.find(lambda x: x.get("user_id") == user_id):
            try:
                out.append(Invoice.model_validate(d))
            except ValidationError as e:
                # entrée invalide ignorée pour ne pas bloquer l'historique
                log.warning("Facture %s ignorée : %s", d.get("id"), e.error_count())
        out.sort(key=lambda inv: inv.created_at, reverse=True)
        return out

    def get_invoice(self, user_id: str, invoice_id: str) -> Optional[Invoice]:
        return next((inv for inv in self.list_invoices(user_id) if inv.id == invoice_id), None)

    def upsert_invoice(self, invoice: Invoice) -> None:
        if not invoice.id:
            raise StorageError("Facture sans identifiant : enregistrement impossible")
        self.repo.upsert(invoice.model_dump(mode="json"))


class JsonProfileStore:
    """Profils utilisateur (data/profiles.json), un enregistrement par user_id."""

    def __init__(self, path: Union[str, Path]):
        self.repo = JsonRepository(path, entity_name="profile", key="user_id")

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        d = self.repo.get_by_id(user_id)
        if d is None:
            return None
        try:
            return UserProfile.model_validate(d)
        except ValidationError:
            log.warning("Profil %s illisible, valeurs par défaut utilisées", user_id)
            return None

    def save_profile(self, profile: UserProfile) -> bool:
        try:
            self.repo.upsert(profile.model_dump(mode="json"))
        except StorageError:
            log.exception("Sauvegarde du profil %s impossible", profile.user_id)
            return False
        return True
