# facturier/cli.py
"""
Petit point d'entrée en ligne de commande.

    facturier --user U history
    facturier --user U next-number [--month 2024-03]
    facturier --user U export <ID> [--out DIR]
    facturier --user U preview <ID> [--out FICHIER.html]
"""
from __future__ import annotations
import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from facturier.config import AppContext, load_config
from facturier.pdf.renderer import InvoicePdfRenderer
from facturier.services.numbering import YearMonth, next_number
from facturier.services.preview import InvoicePreview
from facturier.storage.json_repo import StorageError
from facturier.utils.dates import format_date
from facturier.utils.formatting import format_money

log = logging.getLogger("facturier")


def cmd_history(ctx: AppContext, args: argparse.Namespace) -> int:
    invoices = ctx.history.list_invoices(ctx.user_id)
    if not invoices:
        print("Aucune facture.")
        return 0
    for inv in invoices:
        amount = inv.total_amount if inv.is_finalized else inv.articles_total()
        print(f"{inv.invoice_number}  {inv.status:<9}  {format_date(inv.invoice_date)}  "
              f"{inv.client_info.full_name or '-':<25}  {format_money(amount):>12}  {inv.id}")
    return 0


def cmd_next_number(ctx: AppContext, args: argparse.Namespace) -> int:
    month = YearMonth.parse(args.month) if args.month else YearMonth.from_date(date.today())
    suggestion = next_number(ctx.history.list_invoices(ctx.user_id), month)
    print(suggestion.number)
    if suggestion.has_conflict:
        print(f"Attention : {suggestion.conflict_info}", file=sys.stderr)
    return 0


def cmd_export(ctx: AppContext, args: argparse.Namespace) -> int:
    inv = ctx.history.get_invoice(ctx.user_id, args.invoice_id)
    if inv is None:
        print(f"Facture introuvable : {args.invoice_id}", file=sys.stderr)
        return 1
    renderer = InvoicePdfRenderer(ctx.config, ctx.images)
    path = renderer.export(inv, args.out)
    print(path)
    return 0


def cmd_preview(ctx: AppContext, args: argparse.Namespace) -> int:
    inv = ctx.history.get_invoice(ctx.user_id, args.invoice_id)
    if inv is None:
        print(f"Facture introuvable : {args.invoice_id}", file=sys.stderr)
        return 1
    preview = InvoicePreview(footer_notice=ctx.config.footer_notice)
    out = args.out or (ctx.config.export_dir / f"facture-{inv.invoice_number}.html")
    print(preview.write_html(inv, out))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="facturier", description="Factures : historique, numérotation, export PDF")
    parser.add_argument("--data-dir", default=None, help="dossier des données (invoices.json, profiles.json)")
    parser.add_argument("--user", required=True, help="identifiant utilisateur")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("history", help="liste les factures")
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("next-number", help="numéro suivant pour un mois")
    p.add_argument("--month", help="AAAA-MM (mois courant par défaut)")
    p.set_defaults(func=cmd_next_number)

    p = sub.add_parser("export", help="exporte une facture en PDF")
    p.add_argument("invoice_id")
    p.add_argument("--out", help="dossier de sortie")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("preview", help="aperçu HTML d'une facture")
    p.add_argument("invoice_id")
    p.add_argument("--out", help="fichier HTML de sortie")
    p.set_defaults(func=cmd_preview)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.data_dir)
        ctx = AppContext.from_config(config, user_id=args.user)
        return args.func(ctx, args)
    except StorageError as e:
        log.error("Stockage indisponible : %s", e)
        return 2
    except ValueError as e:
        print(f"Erreur : {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
