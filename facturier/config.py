# facturier/config.py
"""
Configuration explicite, construite une fois par processus.

Ordre de résolution (le dernier l'emporte) :
  1. valeurs par défaut
  2. <data_dir>/settings.json
  3. variables d'environnement FACTURIER_*
"""
from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from facturier.models.profile import UserProfile
from facturier.storage.images import DefaultImageSource, ImageSource
from facturier.storage.stores import HistoryStore, JsonHistoryStore, JsonProfileStore, ProfileStore

log = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
ROOT_DIR = PACKAGE_DIR.parent
DEFAULT_DATA_DIR = ROOT_DIR / "data"
DEFAULT_LOGO = PACKAGE_DIR / "assets" / "logo.png"

_ENV_KEYS = {
    "FACTURIER_DATA_DIR": "data_dir",
    "FACTURIER_EXPORTS_DIR": "exports_dir",
    "FACTURIER_DEFAULT_LOGO": "default_logo_path",
    "FACTURIER_PERSISTENCE_REQUIRED": "persistence_required",
    "FACTURIER_FOOTER_NOTICE": "footer_notice",
}


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    data_dir: Path = DEFAULT_DATA_DIR
    exports_dir: Optional[Path] = None
    default_logo_path: Optional[Path] = DEFAULT_LOGO
    # si True, un échec de sauvegarde du profil annule la finalisation
    persistence_required: bool = True
    footer_notice: str = ""
    logo_max_size: int = Field(default=256, gt=0)
    image_timeout: float = Field(default=10.0, gt=0)

    @property
    def invoices_path(self) -> Path:
        return self.data_dir / "invoices.json"

    @property
    def profiles_path(self) -> Path:
        return self.data_dir / "profiles.json"

    @property
    def export_dir(self) -> Path:
        return self.exports_dir or (self.data_dir.parent / "exports" / "factures")


def _load_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        log.warning("settings.json illisible (%s), ignoré", path)
        return None


def load_config(data_dir: Optional[Union[str, Path]] = None, **overrides: Any) -> AppConfig:
    values: Dict[str, Any] = {}
    base = Path(data_dir or os.environ.get("FACTURIER_DATA_DIR") or DEFAULT_DATA_DIR)
    values["data_dir"] = base

    settings = _load_json(base / "settings.json")
    if isinstance(settings, dict):
        values.update({k: v for k, v in settings.items() if k in AppConfig.model_fields})

    for env_key, field in _ENV_KEYS.items():
        val = os.environ.get(env_key)
        if val not in (None, ""):
            values[field] = val
    if data_dir is not None:
        values["data_dir"] = Path(data_dir)

    values.update(overrides)
    return AppConfig.model_validate(values)


class AppContext:
    """Config + collaborateurs externes + utilisateur courant."""

    def __init__(
        self,
        config: AppConfig,
        history: HistoryStore,
        profiles: ProfileStore,
        images: ImageSource,
        user_id: Optional[str] = None,
    ) -> None:
        self.config = config
        self.history = history
        self.profiles = profiles
        self.images = images
        self.user_id = user_id

    @classmethod
    def from_config(cls, config: AppConfig, user_id: Optional[str] = None) -> "AppContext":
        return cls(
            config=config,
            history=JsonHistoryStore(config.invoices_path),
            profiles=JsonProfileStore(config.profiles_path),
            images=DefaultImageSource(base_dir=config.data_dir, timeout=config.image_timeout),
            user_id=user_id,
        )

    def load_profile(self) -> UserProfile:
        if not self.user_id:
            return UserProfile(user_id="")
        return self.profiles.load_profile(self.user_id) or UserProfile(user_id=self.user_id)
