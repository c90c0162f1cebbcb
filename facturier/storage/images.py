from __future__ import annotations
from pathlib import Path
from typing import Optional, Protocol, Union

import httpx


class ImageSource(Protocol):
    def load_image(self, ref: str) -> bytes: ...


class DefaultImageSource:
    """
    Charge une image depuis une URL http(s) ou un chemin local.
    Les erreurs (réseau, fichier absent) remontent à l'appelant.
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None, timeout: float = 10.0):
        self.base_dir = Path(base_dir) if base_dir else None
        self.timeout = timeout

    def load_image(self, ref: str) -> bytes:
        ref = (ref or "").strip()
        if not ref:
            raise FileNotFoundError("Aucune image indiquée")
        if ref.startswith(("http://", "https://")):
            resp = httpx.get(ref, timeout=self.timeout, follow_redirects=True)
            resp.raise_for_status()
            return resp.content
        path = Path(ref)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path.read_bytes()
