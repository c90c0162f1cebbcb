# facturier/services/numbering.py
"""
Numérotation des factures : AAAA-MM-NNNN.

- La séquence repart à 12 chaque mois (convention historique, à conserver).
- Seules les factures finalisées comptent ; les trous ne sont jamais comblés.
- Un brouillon existant sur le mois n'est qu'un avertissement.
"""
from __future__ import annotations
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from facturier.models.invoice import Invoice

FIRST_SEQUENCE = 12
SEQUENCE_FLOOR = FIRST_SEQUENCE - 1


class YearMonth(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)

    @classmethod
    def from_date(cls, d: date) -> "YearMonth":
        return cls(year=d.year, month=d.month)

    @classmethod
    def parse(cls, text: str) -> "YearMonth":
        """'2024-03' -> YearMonth(2024, 3). Lève ValueError si illisible."""
        parts = (text or "").strip().split("-")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError(f"Mois invalide : {text!r} (attendu AAAA-MM)")
        return cls(year=int(parts[0]), month=int(parts[1]))

    @property
    def prefix(self) -> str:
        return f"{self.year}-{self.month:02d}"


class NumberSuggestion(BaseModel):
    number: str
    has_conflict: bool = False
    conflict_info: Optional[str] = None


def parse_sequence(number: Optional[str]) -> int:
    """3e segment de 'AAAA-MM-NNNN' ; 0 si absent ou non numérique."""
    if not number or not isinstance(number, str):
        return 0
    parts = number.split("-")
    if len(parts) < 3:
        return 0
    try:
        return int(parts[2])
    except ValueError:
        return 0


def format_number(month: YearMonth, sequence: int) -> str:
    return f"{month.prefix}-{sequence:04d}"


def _in_month(inv: Invoice, month: YearMonth) -> bool:
    num = inv.invoice_number or ""
    return isinstance(num, str) and num.startswith(month.prefix)


def next_number(history: Iterable[Invoice], target_month: YearMonth) -> NumberSuggestion:
    history = list(history)

    sequences = [
        parse_sequence(inv.invoice_number)
        for inv in history
        if inv.status == "finalized" and _in_month(inv, target_month)
    ]
    next_seq = max(sequences + [SEQUENCE_FLOOR]) + 1 if sequences else FIRST_SEQUENCE

    draft = next(
        (inv for inv in history if inv.status == "draft" and _in_month(inv, target_month)),
        None,
    )
    conflict_info = None
    if draft is not None:
        conflict_info = (
            f"Une facture brouillon existe déjà pour "
            f"{target_month.month:02d}/{target_month.year} ({draft.invoice_number})"
        )

    return NumberSuggestion(
        number=format_number(target_month, next_seq),
        has_conflict=draft is not None,
        conflict_info=conflict_info,
    )
