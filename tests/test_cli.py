from datetime import date

from facturier.cli import main
from facturier.models.invoice import Invoice
from facturier.storage.stores import JsonHistoryStore

from conftest import USER_ID

D = date(2024, 3, 1)


def _seed(data_dir, company, client, catalog):
    store = JsonHistoryStore(data_dir / "invoices.json")
    store.upsert_invoice(Invoice(
        id="inv-1", user_id=USER_ID, invoice_number="2024-03-0012", invoice_date=D, delivery_date=D,
        payment_due=D, status="finalized", company_info=company, client_info=client, articles=catalog,
    ))


class TestCli:
    def test_next_number(self, tmp_path, capsys, company, client, catalog):
        _seed(tmp_path, company, client, catalog)
        rc = main(["--data-dir", str(tmp_path), "--user", USER_ID, "next-number", "--month", "2024-03"])
        assert rc == 0
        assert capsys.readouterr().out.strip() == "2024-03-0013"

    def test_bad_month(self, tmp_path, capsys):
        rc = main(["--data-dir", str(tmp_path), "--user", USER_ID, "next-number", "--month", "mars"])
        assert rc == 2
        assert "Mois invalide" in capsys.readouterr().err

    def test_history(self, tmp_path, capsys, company, client, catalog):
        _seed(tmp_path, company, client, catalog)
        assert main(["--data-dir", str(tmp_path), "--user", USER_ID, "history"]) == 0
        out = capsys.readouterr().out
        assert "2024-03-0012" in out
        assert "Marc Petit" in out

    def test_export(self, tmp_path, capsys, company, client, catalog):
        _seed(tmp_path, company, client, catalog)
        out_dir = tmp_path / "pdf"
        rc = main(["--data-dir", str(tmp_path), "--user", USER_ID, "export", "inv-1", "--out", str(out_dir)])
        assert rc == 0
        assert (out_dir / "facture-2024-03-0012.pdf").exists()

    def test_export_unknown(self, tmp_path, capsys):
        rc = main(["--data-dir", str(tmp_path), "--user", USER_ID, "export", "absent"])
        assert rc == 1

    def test_export_other_user_invoice(self, tmp_path, capsys, company, client, catalog):
        _seed(tmp_path, company, client, catalog)
        rc = main(["--data-dir", str(tmp_path), "--user", "someone-else", "export", "inv-1"])
        assert rc == 1
        assert "introuvable" in capsys.readouterr().err

    def test_preview(self, tmp_path, company, client, catalog):
        _seed(tmp_path, company, client, catalog)
        out = tmp_path / "apercu.html"
        assert main(["--data-dir", str(tmp_path), "--user", USER_ID, "preview", "inv-1", "--out", str(out)]) == 0
        assert "Facture #2024-03-0012" in out.read_text(encoding="utf-8")
