"""
Scan token decoding.

Two token shapes are understood:

* signed tokens, ``qrhunt://site.<fernet token>``, whose encrypted JSON payload
  names the site id. These are what the admin API prints on new QR codes.
* legacy free-text tokens such as ``"Patan Durbar Square_10"``, matched
  against the catalog by normalized name. Kept for QR codes already printed.
"""
import json
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken

from config import settings
from models import SITE_ACTIVE

logger = logging.getLogger(__name__)

SIGNED_TOKEN_PREFIX = "qrhunt://site."

_POINT_SUFFIX = re.compile(r"^(.+?)[,_](\d+)$")
_CATALOG_SUFFIX = re.compile(r"[,_]\d+$")


@dataclass(frozen=True)
class Recognized:
    site: object  # models.Site
    name: str
    points: int
    signed: bool

    status = "recognized"


@dataclass(frozen=True)
class Unrecognized:
    raw: str
    reason: str

    status = "unrecognized"


def normalize_site_name(name: Optional[str]) -> str:
    """Trim and case-fold a name, dropping a trailing "_<points>" suffix."""
    cleaned = _CATALOG_SUFFIX.sub("", (name or "").strip())
    return " ".join(cleaned.split()).casefold()


def split_token(raw: str):
    """Returns (name, points) for a legacy token."""
    text = (raw or "").strip()
    match = _POINT_SUFFIX.match(text)
    if match:
        return match.group(1).strip(), int(match.group(2))
    return text, 0


class SiteTokenCodec:
    def __init__(self, secret_key: Optional[str] = None):
        if not secret_key:
            logger.warning("SITE_TOKEN_SECRET_KEY is not set, signed site tokens will not survive a restart")
            secret_key = Fernet.generate_key()
        self.cipher = Fernet(secret_key)

    def mint(self, site_id) -> str:
        payload = json.dumps({"site_id": str(site_id)})
        return SIGNED_TOKEN_PREFIX + self.cipher.encrypt(payload.encode()).decode()

    def read_site_id(self, raw: str) -> Optional[uuid.UUID]:
        if not raw.startswith(SIGNED_TOKEN_PREFIX):
            return None
        try:
            decrypted = self.cipher.decrypt(raw[len(SIGNED_TOKEN_PREFIX):].encode())
            payload = json.loads(decrypted.decode())
            return uuid.UUID(payload["site_id"])
        except (InvalidToken, ValueError, KeyError, TypeError):
            return None


_codec: Optional[SiteTokenCodec] = None


def get_codec() -> SiteTokenCodec:
    global _codec
    if _codec is None:
        _codec = SiteTokenCodec(settings.SITE_TOKEN_SECRET_KEY)
    return _codec


def match_site_by_name(name: str, sites: Iterable) -> Optional[object]:
    """Exact normalized match first, then substring containment."""
    wanted = normalize_site_name(name)
    if not wanted:
        return None
    candidates = list(sites)
    for site in candidates:
        if normalize_site_name(site.name) == wanted:
            return site
    for site in candidates:
        if wanted in (site.name or "").casefold():
            return site
    return None


def decode_token(raw: str, sites: Iterable, codec: Optional[SiteTokenCodec] = None):
    """
    Resolves a scanned payload against the active catalog.

    Never raises; anything that cannot be resolved comes back as Unrecognized.
    """
    raw = (raw or "").strip()
    active = [site for site in sites if site.status == SITE_ACTIVE]
    if not raw:
        return Unrecognized(raw=raw, reason="empty")

    if raw.startswith(SIGNED_TOKEN_PREFIX):
        site_id = (codec or get_codec()).read_site_id(raw)
        if site_id is None:
            return Unrecognized(raw=raw, reason="invalid_signature")
        for site in active:
            if site.id == site_id:
                return Recognized(site=site, name=site.name, points=site.point_value, signed=True)
        return Unrecognized(raw=raw, reason="unknown_site")

    name, points = split_token(raw)
    site = match_site_by_name(name, active)
    if site is None:
        logger.debug("No catalog match for token %r", raw)
        return Unrecognized(raw=raw, reason="unknown_site")
    return Recognized(site=site, name=name, points=points, signed=False)
