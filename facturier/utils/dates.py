from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Any, Optional

DATE_FORMAT = "%d/%m/%Y"
DEFAULT_TERM_DAYS = 30


def format_date(d: Optional[date]) -> str:
    if d is None:
        return ""
    return d.strftime(DATE_FORMAT)


def parse_date(value: Any) -> Optional[date]:
    """Accepte date, datetime, 'jj/mm/aaaa' ou ISO ('aaaa-mm-jj[Thh:mm...]')."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return datetime.strptime(s, DATE_FORMAT).date()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


def term_days(term: Optional[str]) -> int:
    """'20 jours à réception' -> 20 ; non lisible -> 30."""
    token = (term or "").strip().split(" ")[0]
    try:
        days = int(token)
    except ValueError:
        return DEFAULT_TERM_DAYS
    return days if days >= 0 else DEFAULT_TERM_DAYS


def payment_due(invoice_date: date, term: Optional[str]) -> date:
    # jours calendaires, pas de jours ouvrés
    return invoice_date + timedelta(days=term_days(term))
