from __future__ import annotations
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from .article import Article
from .common import utcnow
from .party import ClientInfo, CompanyInfo


class UserProfile(BaseModel):
    """Valeurs par défaut de l'utilisateur : émetteur, client courant, catalogue, clients."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    user_id: str
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    client_info: ClientInfo = Field(default_factory=ClientInfo)
    articles: List[Article] = Field(default_factory=list)
    clients: List[ClientInfo] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)
