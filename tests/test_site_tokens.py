from cryptography.fernet import Fernet
import pytest

from models import SITE_INACTIVE
from utils.site_tokens import (
    SIGNED_TOKEN_PREFIX, Recognized, SiteTokenCodec, Unrecognized,
    decode_token, normalize_site_name, split_token,
)
from tests.fakes import make_site


@pytest.fixture
def codec():
    return SiteTokenCodec(Fernet.generate_key())


@pytest.fixture
def catalog():
    return [
        make_site("Durbar Square Museum", points=5),
        make_site("Durbar Square", points=10),
        make_site("Boudhanath Stupa", points=15),
        make_site("Closed Temple", points=20, status=SITE_INACTIVE),
    ]


@pytest.mark.parametrize("raw, expected", [
    ("Patan Durbar_10", ("Patan Durbar", 10)),
    ("Patan Durbar,25", ("Patan Durbar", 25)),
    ("a_b_20", ("a_b", 20)),
    ("NoSuffix", ("NoSuffix", 0)),
    ("Name_abc", ("Name_abc", 0)),
    ("  Swayambhu_15  ", ("Swayambhu", 15)),
])
def test_split_token(raw, expected):
    assert split_token(raw) == expected


def test_normalize_site_name():
    assert normalize_site_name("  Swayambhu   Stupa_15 ") == "swayambhu stupa"
    assert normalize_site_name("DURBAR square") == "durbar square"
    assert normalize_site_name(None) == ""


def test_exact_match_beats_substring(catalog):
    decoded = decode_token("durbar square_10", catalog)
    assert isinstance(decoded, Recognized)
    assert decoded.site.name == "Durbar Square"
    assert decoded.points == 10
    assert not decoded.signed


def test_substring_fallback(catalog):
    decoded = decode_token("Boudha", catalog)
    assert isinstance(decoded, Recognized)
    assert decoded.site.name == "Boudhanath Stupa"


def test_inactive_site_is_not_matched(catalog):
    decoded = decode_token("Closed Temple_20", catalog)
    assert isinstance(decoded, Unrecognized)
    assert decoded.reason == "unknown_site"


@pytest.mark.parametrize("raw", ["", "   ", "https://example.com/promo", "_10", "\x00\x01"])
def test_garbage_is_unrecognized(raw, catalog):
    decoded = decode_token(raw, catalog)
    assert isinstance(decoded, Unrecognized)
    assert decoded.status == "unrecognized"


def test_signed_token_resolves_by_id(codec, catalog):
    site = catalog[2]
    token = codec.mint(site.id)
    assert token.startswith(SIGNED_TOKEN_PREFIX)

    site.name = "Renamed Stupa"
    decoded = decode_token(token, catalog, codec)
    assert isinstance(decoded, Recognized)
    assert decoded.site is site
    assert decoded.points == site.point_value
    assert decoded.signed


def test_tampered_signed_token_is_rejected(codec, catalog):
    token = codec.mint(catalog[0].id)
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
    decoded = decode_token(tampered, catalog, codec)
    assert isinstance(decoded, Unrecognized)
    assert decoded.reason == "invalid_signature"


def test_token_from_other_key_is_rejected(codec, catalog):
    other = SiteTokenCodec(Fernet.generate_key())
    decoded = decode_token(other.mint(catalog[0].id), catalog, codec)
    assert isinstance(decoded, Unrecognized)
    assert decoded.reason == "invalid_signature"


def test_signed_token_for_inactive_site(codec, catalog):
    decoded = decode_token(codec.mint(catalog[3].id), catalog, codec)
    assert isinstance(decoded, Unrecognized)
    assert decoded.reason == "unknown_site"
