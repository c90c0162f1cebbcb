from __future__ import annotations
import io

from PIL import Image

LOGO_MAX_SIZE = 256


def prepare_logo(image_bytes: bytes, max_size: int = LOGO_MAX_SIZE) -> bytes:
    """
    Réduit l'image pour tenir dans un carré max_size x max_size (ratio conservé),
    aplatie sur fond blanc opaque (évite le carré noir des zones transparentes).
    Retourne un PNG.
    """
    img = Image.open(io.BytesIO(image_bytes))
    img.load()
    if img.mode != "RGBA":
        img = img.convert("RGBA")

    img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)

    background = Image.new("RGB", img.size, (255, 255, 255))
    background.paste(img, mask=img.getchannel("A"))

    buf = io.BytesIO()
    background.save(buf, format="PNG", optimize=True)
    return buf.getvalue()
