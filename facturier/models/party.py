from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from facturier.utils.formatting import normalize_siret


class _Party(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    first_name: str = ""
    last_name: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    phone: str = ""
    email: Optional[EmailStr] = None
    siret: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def _empty_email(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("siret", mode="before")
    @classmethod
    def _check_siret(cls, v):
        return normalize_siret(v)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def city_line(self) -> str:
        return f"{self.postal_code} {self.city}".strip()


class ClientInfo(_Party):
    pass


class CompanyInfo(_Party):
    company_name: str = ""
    account_name: str = ""  # nom associé au compte
    bic: str = ""
    iban: str = ""
    bank_name: str = ""
    logo_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.company_name or self.full_name
