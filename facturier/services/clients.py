# facturier/services/clients.py
"""
Liste de clients de l'utilisateur et contrôle des noms en double.

Les doublons ne bloquent jamais : comme pour la numérotation, on renvoie un
avertissement que l'appelant affiche (ou non).
"""
from __future__ import annotations
from typing import List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from facturier.models.article import Article
from facturier.models.party import ClientInfo


class NameCheck(BaseModel):
    name: str
    has_duplicate: bool = False
    duplicate_info: Optional[str] = None


def _same(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def check_client_name(
    clients: Sequence[ClientInfo], first_name: str, last_name: str, exclude_index: Optional[int] = None,
) -> NameCheck:
    """Prénom et nom identiques (casse et espaces ignorés) à un autre client de la liste."""
    name = f"{first_name} {last_name}".strip()
    dup = any(
        _same(c.first_name, first_name) and _same(c.last_name, last_name)
        for i, c in enumerate(clients) if i != exclude_index
    )
    if not dup:
        return NameCheck(name=name)
    return NameCheck(name=name, has_duplicate=True,
                     duplicate_info=f'Un client nommé "{name}" existe déjà. Cela peut causer de la confusion.')


def check_article_name(articles: Sequence[Article], name: str, exclude_id: Optional[str] = None) -> NameCheck:
    dup = any(_same(a.name, name) and a.id != exclude_id for a in articles)
    if not dup:
        return NameCheck(name=name)
    return NameCheck(name=name, has_duplicate=True,
                     duplicate_info=f'Un produit nommé "{name}" existe déjà. Cela peut causer de la confusion.')


# ---------- Commandes ---------- #

def _blank_client() -> ClientInfo:
    return ClientInfo(first_name="Nouveau", last_name="Client")


class AddClient(BaseModel):
    client: ClientInfo = Field(default_factory=_blank_client)


class SelectClient(BaseModel):
    index: int = Field(ge=0)


class RemoveClient(BaseModel):
    # None -> client sélectionné
    index: Optional[int] = Field(default=None, ge=0)


ClientCommand = Union[AddClient, SelectClient, RemoveClient]


class ClientBook(BaseModel):
    """Clients enregistrés + index du client courant (-1 : aucun)."""

    model_config = ConfigDict(frozen=True)

    clients: List[ClientInfo] = Field(default_factory=list)
    selected: int = -1

    @classmethod
    def from_profile(cls, clients: Sequence[ClientInfo], current: ClientInfo) -> "ClientBook":
        items = list(clients)
        selected = next((i for i, c in enumerate(items) if c == current), -1)
        return cls(clients=items, selected=selected)

    @property
    def current(self) -> Optional[ClientInfo]:
        if 0 <= self.selected < len(self.clients):
            return self.clients[self.selected]
        return None

    def check(self, client: ClientInfo) -> NameCheck:
        return check_client_name(self.clients, client.first_name, client.last_name)

    def replace_current(self, client: ClientInfo) -> "ClientBook":
        if self.current is None:
            return self
        items = list(self.clients)
        items[self.selected] = client
        return self.model_copy(update={"clients": items})

    def remember(self, client: ClientInfo) -> "ClientBook":
        """Ajoute le client de la facture s'il n'est pas encore dans la liste."""
        if self.current is not None:
            return self.replace_current(client)
        if not client.full_name or client in self.clients:
            return self
        items = [*self.clients, client]
        return ClientBook(clients=items, selected=len(items) - 1)


def apply_client_command(book: ClientBook, cmd: ClientCommand) -> ClientBook:
    if isinstance(cmd, AddClient):
        items = [*book.clients, cmd.client]
        return ClientBook(clients=items, selected=len(items) - 1)

    if isinstance(cmd, SelectClient):
        if cmd.index >= len(book.clients):
            raise ValueError(f"Client {cmd.index} introuvable")
        return book.model_copy(update={"selected": cmd.index})

    if isinstance(cmd, RemoveClient):
        idx = book.selected if cmd.index is None else cmd.index
        if not 0 <= idx < len(book.clients):
            raise ValueError("Aucun client à supprimer")
        items = [c for i, c in enumerate(book.clients) if i != idx]
        if not items:
            return ClientBook()
        if idx == book.selected:
            selected = max(0, idx - 1)
        else:
            selected = book.selected - 1 if idx < book.selected else book.selected
        return ClientBook(clients=items, selected=selected)

    raise TypeError(f"Commande non prise en charge : {type(cmd).__name__}")
