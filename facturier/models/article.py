from __future__ import annotations
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .common import gen_id
from facturier.utils.formatting import pluralize_unit


class Article(BaseModel):
    # 'total' est dérivé : une valeur fournie au chargement est ignorée
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=gen_id)
    name: str = "Nouvel article"
    description: List[str] = Field(default_factory=list)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit: str = "Unité"
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("description", mode="before")
    @classmethod
    def _split_description(cls, v):
        # anciens enregistrements : description en texte libre
        if v is None:
            return []
        if isinstance(v, str):
            return [ln for ln in v.splitlines() if ln.strip()]
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def unit_label(self) -> str:
        return pluralize_unit(self.unit, self.quantity)
