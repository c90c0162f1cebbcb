import json
from datetime import date, datetime, timedelta, timezone

import pytest

from facturier.config import AppContext, load_config
from facturier.models.invoice import Invoice
from facturier.models.profile import UserProfile
from facturier.storage.images import DefaultImageSource
from facturier.storage.json_repo import JsonRepository, StorageError
from facturier.storage.stores import JsonHistoryStore, JsonProfileStore

from conftest import USER_ID

D = date(2024, 3, 1)


def _inv(inv_id, user_id=USER_ID, minutes=0, **kw):
    created = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return Invoice(id=inv_id, user_id=user_id, invoice_number="2024-03-0012", invoice_date=D,
                   delivery_date=D, payment_due=D, created_at=created, **kw)


class TestJsonRepository:
    def test_creates_file(self, tmp_path):
        path = tmp_path / "sub" / "items.json"
        JsonRepository(path, "item")
        assert json.loads(path.read_text(encoding="utf-8")) == []

    def test_upsert_merges_by_key(self, tmp_path):
        repo = JsonRepository(tmp_path / "items.json", "item", backup_keep=0)
        repo.upsert({"id": "a", "name": "x", "extra": 1})
        repo.upsert({"id": "a", "name": "y"})
        repo.upsert({"id": "b", "name": "z"})
        assert repo.get_by_id("a") == {"id": "a", "name": "y", "extra": 1}
        assert len(repo.list_all()) == 2

    def test_upsert_requires_key(self, tmp_path):
        repo = JsonRepository(tmp_path / "items.json", "item")
        with pytest.raises(StorageError):
            repo.upsert({"name": "sans id"})

    def test_find_and_get(self, tmp_path):
        repo = JsonRepository(tmp_path / "items.json", "item", backup_keep=0)
        repo.upsert({"id": "a", "kind": "x"})
        repo.upsert({"id": 7, "kind": "y"})
        assert repo.find(lambda r: r["kind"] == "y") == [{"id": 7, "kind": "y"}]
        assert repo.get_by_id("7") == {"id": 7, "kind": "y"}
        assert repo.get_by_id("absent") is None

    def test_backups_disabled(self, tmp_path):
        repo = JsonRepository(tmp_path / "items.json", "item", backup_keep=0)
        repo.upsert({"id": "a", "n": 1})
        repo.upsert({"id": "a", "n": 2})
        assert list(tmp_path.glob("items.*.bak.json")) == []

    def test_corrupt_file_is_kept_aside(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text("{pas du json", encoding="utf-8")
        repo = JsonRepository(path, "item")
        assert repo.list_all() == []
        assert (tmp_path / "items.corrupt.json").read_text(encoding="utf-8") == "{pas du json"

    def test_backup_rotation(self, tmp_path):
        repo = JsonRepository(tmp_path / "items.json", "item", backup_keep=2)
        for i in range(5):
            repo.upsert({"id": "a", "n": i})
        backups = list(tmp_path.glob("items.*.bak.json"))
        assert len(backups) == 2

    def test_unchanged_content_not_rewritten(self, tmp_path):
        repo = JsonRepository(tmp_path / "items.json", "item", backup_keep=5)
        repo.upsert({"id": "a"})
        repo.upsert({"id": "a"})
        assert len(list(tmp_path.glob("items.*.bak.json"))) == 1

    def test_directory_unreachable(self, tmp_path):
        blocker = tmp_path / "fichier"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonRepository(blocker / "items.json", "item")


class TestHistoryStore:
    def test_filters_by_user_and_sorts(self, tmp_path):
        store = JsonHistoryStore(tmp_path / "invoices.json")
        store.upsert_invoice(_inv("old", minutes=0))
        store.upsert_invoice(_inv("new", minutes=10))
        store.upsert_invoice(_inv("other", user_id="someone-else"))
        assert [inv.id for inv in store.list_invoices(USER_ID)] == ["new", "old"]
        assert store.get_invoice(USER_ID, "other") is None

    def test_invalid_entries_skipped(self, tmp_path):
        path = tmp_path / "invoices.json"
        store = JsonHistoryStore(path)
        store.upsert_invoice(_inv("ok"))
        data = json.loads(path.read_text(encoding="utf-8"))
        data.append({"id": "broken", "user_id": USER_ID, "invoice_number": "x"})
        path.write_text(json.dumps(data), encoding="utf-8")
        assert [inv.id for inv in store.list_invoices(USER_ID)] == ["ok"]

    def test_mixed_legacy_timestamps_sort(self, tmp_path):
        path = tmp_path / "invoices.json"
        base = {"user_id": USER_ID, "invoice_number": "2024-03-0012", "invoice_date": "01/03/2024",
                "delivery_date": "01/03/2024", "payment_due": "31/03/2024"}
        path.write_text(json.dumps([
            {**base, "id": "legacy", "created_at": "2024-03-01T09:00:00"},
            {**base, "id": "recent", "created_at": "2024-03-01T10:00:00Z"},
        ]), encoding="utf-8")

        invoices = JsonHistoryStore(path).list_invoices(USER_ID)
        assert [inv.id for inv in invoices] == ["recent", "legacy"]
        assert all(inv.created_at.tzinfo is not None for inv in invoices)

    def test_upsert_requires_id(self, tmp_path):
        store = JsonHistoryStore(tmp_path / "invoices.json")
        with pytest.raises(StorageError):
            store.upsert_invoice(_inv(None))

    def test_decimal_round_trip(self, tmp_path, catalog):
        store = JsonHistoryStore(tmp_path / "invoices.json")
        store.upsert_invoice(_inv("a", articles=catalog))
        loaded = store.get_invoice(USER_ID, "a")
        assert loaded.articles == catalog
        assert loaded.articles_total() == sum(a.total for a in catalog)


class TestProfileStore:
    def test_round_trip(self, tmp_path, profile):
        store = JsonProfileStore(tmp_path / "profiles.json")
        assert store.load_profile(USER_ID) is None
        assert store.save_profile(profile)
        loaded = store.load_profile(USER_ID)
        assert loaded.company_info == profile.company_info
        assert loaded.articles == profile.articles

    def test_save_failure_returns_false(self, tmp_path, monkeypatch):
        store = JsonProfileStore(tmp_path / "profiles.json")

        def boom(record):
            raise StorageError("lecture seule")

        monkeypatch.setattr(store.repo, "upsert", boom)
        assert store.save_profile(UserProfile(user_id=USER_ID)) is False


class TestImageSource:
    def test_relative_path(self, tmp_path):
        (tmp_path / "logo.png").write_bytes(b"\x89PNG")
        assert DefaultImageSource(base_dir=tmp_path).load_image("logo.png") == b"\x89PNG"

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DefaultImageSource(base_dir=tmp_path).load_image("absent.png")
        with pytest.raises(FileNotFoundError):
            DefaultImageSource().load_image("")


class TestConfig:
    def test_defaults(self, tmp_path, monkeypatch):
        for key in ("FACTURIER_DATA_DIR", "FACTURIER_EXPORTS_DIR", "FACTURIER_PERSISTENCE_REQUIRED"):
            monkeypatch.delenv(key, raising=False)
        cfg = load_config(tmp_path)
        assert cfg.data_dir == tmp_path
        assert cfg.persistence_required is True
        assert cfg.invoices_path == tmp_path / "invoices.json"
        assert cfg.export_dir == tmp_path.parent / "exports" / "factures"

    def test_settings_then_env(self, tmp_path, monkeypatch):
        (tmp_path / "settings.json").write_text(
            json.dumps({"footer_notice": "RCS Lyon", "persistence_required": False, "inconnu": 1}),
            encoding="utf-8",
        )
        monkeypatch.setenv("FACTURIER_FOOTER_NOTICE", "RCS Paris")
        cfg = load_config(tmp_path)
        assert cfg.persistence_required is False
        assert cfg.footer_notice == "RCS Paris"

    def test_context_from_config(self, tmp_path):
        ctx = AppContext.from_config(load_config(tmp_path), user_id=USER_ID)
        assert ctx.load_profile().user_id == USER_ID
        assert ctx.history.list_invoices(USER_ID) == []
