from datetime import date

import pytest
from pydantic import ValidationError

from facturier.models.party import ClientInfo
from facturier.services.clients import (
    AddClient, ClientBook, RemoveClient, SelectClient, apply_client_command, check_article_name, check_client_name,
)
from facturier.services.editing import AddArticle, UpdateArticle, UpdateClient
from facturier.services.lifecycle import InvoiceLifecycle

from conftest import USER_ID

TODAY = date(2024, 3, 1)


@pytest.fixture
def other():
    return ClientInfo(first_name="Julie", last_name="Morel", city="Grenoble")


@pytest.fixture
def book(client, other):
    return ClientBook(clients=[client, other], selected=0)


@pytest.fixture
def lifecycle(ctx, profile, client, other):
    lc = InvoiceLifecycle(ctx, profile.model_copy(update={"clients": [client, other]}))
    lc.create_draft("2024-03-0012", TODAY)
    return lc


class TestNameChecks:
    def test_client_name_ignores_case_and_spaces(self, client, other):
        check = check_client_name([client, other], " marc", "PETIT ")
        assert check.has_duplicate
        assert '"marc PETIT"' in check.duplicate_info

    def test_client_name_excludes_own_entry(self, client, other):
        assert not check_client_name([client, other], "Marc", "Petit", exclude_index=0).has_duplicate

    def test_same_first_name_only(self, client):
        assert not check_client_name([client], "Marc", "Durand").has_duplicate

    def test_article_name(self, catalog):
        assert check_article_name(catalog, "livraison").has_duplicate
        assert not check_article_name(catalog, "Livraison", exclude_id=catalog[1].id).has_duplicate
        assert not check_article_name(catalog, "Éclairage").has_duplicate


class TestClientBook:
    def test_add_selects_new_client(self, book):
        new = apply_client_command(book, AddClient())
        assert len(new.clients) == 3
        assert new.selected == 2
        assert new.current.full_name == "Nouveau Client"
        assert len(book.clients) == 2

    def test_select(self, book, other):
        assert apply_client_command(book, SelectClient(index=1)).current == other

    def test_select_out_of_range(self, book):
        with pytest.raises(ValueError):
            apply_client_command(book, SelectClient(index=5))
        with pytest.raises(ValidationError):
            SelectClient(index=-1)

    def test_remove_selected_falls_back_to_previous(self, book, client):
        new = apply_client_command(book.model_copy(update={"selected": 1}), RemoveClient())
        assert new.clients == [client]
        assert new.selected == 0

    def test_remove_before_selected_keeps_selection(self, book, other):
        new = apply_client_command(book.model_copy(update={"selected": 1}), RemoveClient(index=0))
        assert new.current == other

    def test_remove_last_client(self, client):
        new = apply_client_command(ClientBook(clients=[client], selected=0), RemoveClient())
        assert new.clients == []
        assert new.current is None

    def test_remove_without_selection(self):
        with pytest.raises(ValueError):
            apply_client_command(ClientBook(), RemoveClient())

    def test_remember_unknown_client(self, client):
        remembered = ClientBook().remember(client)
        assert remembered.clients == [client]
        assert remembered.selected == 0
        assert ClientBook().remember(ClientInfo()).clients == []


class TestLifecycleClients:
    def test_profile_client_is_selected(self, lifecycle, client):
        assert lifecycle.clients.current == client

    def test_select_changes_invoice_client(self, lifecycle, other):
        res = lifecycle.apply(SelectClient(index=1))
        assert res.ok
        assert res.invoice.client_info == other

    def test_duplicate_client_is_only_a_warning(self, lifecycle):
        res = lifecycle.apply(AddClient(client=ClientInfo(first_name="marc", last_name="petit")))
        assert res.ok
        assert len(res.warnings) == 1
        assert "existe déjà" in res.warnings[0]
        assert len(lifecycle.clients.clients) == 3
        assert res.invoice.client_info.first_name == "marc"

    def test_remove_current_client(self, lifecycle, client, other):
        lifecycle.apply(SelectClient(index=1))
        res = lifecycle.apply(RemoveClient())
        assert res.ok
        assert lifecycle.clients.clients == [client]
        assert res.invoice.client_info == client

    def test_unknown_index_reported(self, lifecycle):
        res = lifecycle.apply(SelectClient(index=9))
        assert not res.ok
        assert "introuvable" in res.errors[0]

    def test_update_client_updates_list_entry(self, lifecycle):
        res = lifecycle.apply(UpdateClient(fields={"city": "Villeurbanne"}))
        assert res.ok
        assert not res.warnings
        assert lifecycle.clients.clients[0].city == "Villeurbanne"

    def test_rename_client_to_existing_name(self, lifecycle):
        res = lifecycle.apply(UpdateClient(fields={"first_name": "Julie", "last_name": "Morel"}))
        assert res.ok
        assert "Julie Morel" in res.warnings[0]

    def test_duplicate_article_warning(self, lifecycle, catalog):
        res = lifecycle.apply(AddArticle(article=catalog[0]))
        assert res.ok
        assert '"Sonorisation"' in res.warnings[0]
        assert not lifecycle.apply(AddArticle()).warnings

    def test_rename_article_to_existing_name(self, lifecycle):
        first, second = lifecycle.invoice.articles
        assert not lifecycle.apply(UpdateArticle(article_id=first.id, name="Sonorisation")).warnings
        res = lifecycle.apply(UpdateArticle(article_id=second.id, name="sonorisation"))
        assert res.ok
        assert res.warnings

    def test_finalized_invoice_rejects_client_commands(self, lifecycle, client):
        assert lifecycle.finalize().ok
        res = lifecycle.apply(SelectClient(index=1))
        assert not res.ok
        assert lifecycle.invoice.client_info == client

    def test_clients_persisted_with_profile(self, ctx, lifecycle, other):
        lifecycle.apply(SelectClient(index=1))
        lifecycle.apply(UpdateClient(fields={"phone": "0476000000"}))
        assert lifecycle.flush_profile()

        stored = ctx.profiles.load_profile(USER_ID)
        assert [c.last_name for c in stored.clients] == ["Petit", "Morel"]
        assert stored.clients[1].phone == "0476000000"
        assert stored.client_info == stored.clients[1]

        reloaded = InvoiceLifecycle(ctx)
        assert reloaded.clients.selected == 1

    def test_invoice_client_added_on_save(self, ctx, profile, client):
        lc = InvoiceLifecycle(ctx, profile)
        lc.create_draft("2024-03-0012", TODAY)
        assert lc.clients.clients == []
        assert lc.flush_profile()
        assert ctx.profiles.load_profile(USER_ID).clients == [client]
        assert lc.clients.current == client
