from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email as _validate_email

SIRET_LENGTH = 14


def _digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


# ---------- Téléphone / SIRET / IBAN ---------- #

def format_phone(phone: Optional[str]) -> str:
    """'0612345678' -> '06 12 34 56 78' (groupes de 2 chiffres)."""
    digits = _digits(phone)
    return re.sub(r"(\d{2})(?=\d)", r"\1 ", digits).strip()


def format_siret(siret: Optional[str]) -> str:
    digits = _digits(siret)
    if len(digits) == SIRET_LENGTH:
        return f"{digits[:3]} {digits[3:6]} {digits[6:9]} {digits[9:]}"
    return re.sub(r"(\d{3})(?=\d)", r"\1 ", digits).strip()


def validate_siret(siret: Optional[str]) -> bool:
    return len(_digits(siret)) == SIRET_LENGTH


def normalize_siret(siret: Optional[str]) -> str:
    """
    Vide -> "" ; sinon exactement 14 chiffres (espaces tolérés).
    Lève ValueError sinon.
    """
    raw = (siret or "").strip()
    if not raw:
        return ""
    if re.search(r"[^\d\s]", raw) or not validate_siret(raw):
        raise ValueError(f"SIRET invalide ({raw!r}) : {SIRET_LENGTH} chiffres attendus")
    return _digits(raw)


def format_iban(iban: Optional[str]) -> str:
    chars = re.sub(r"\s", "", iban or "").upper()
    return " ".join(chars[i:i + 4] for i in range(0, len(chars), 4))


def validate_email(email: Optional[str]) -> bool:
    if not (email or "").strip():
        return False
    try:
        _validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


# ---------- Montants / quantités ---------- #

def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    s = str(value).strip().replace(",", ".")
    try:
        return Decimal(s)
    except (InvalidOperation, ValueError):
        return default


def format_money(amount: Any) -> str:
    """Decimal('12.5') -> '12.50 €'"""
    value = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{value:.2f} €"


def format_quantity(quantity: Any) -> str:
    q = to_decimal(quantity)
    if q == q.to_integral_value():
        return str(q.to_integral_value())
    return format(q.normalize(), "f")


def pluralize_unit(unit: str, quantity: Any) -> str:
    unit = unit or ""
    if unit and to_decimal(quantity) > 1:
        return f"{unit}s"
    return unit
