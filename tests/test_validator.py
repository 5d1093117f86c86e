import pytest

from pihole_listsync.models import ListKind
from pihole_listsync.validator import is_hostname, is_url, to_ascii, validate, validate_domain, validate_url


@pytest.mark.parametrize("value", [
    "https://example.com/list.txt",
    "http://example.com:8080/hosts?format=plain&v=2",
    "https://example.com/my%20list.txt",
    "file:///etc/pihole/local.list",
])
def test_valid_urls(value):
    assert validate_url(value) == value


@pytest.mark.parametrize("value", [
    "example.com/list.txt",
    "https://",
    "https://example.com/{list}",
    "https://example.com/list one.txt",
])
def test_invalid_urls(value):
    assert validate_url(value) is None


def test_is_url_requires_scheme_and_host():
    assert is_url("https://example.com")
    assert not is_url("ads.example.com")


@pytest.mark.parametrize("value, expected", [
    ("Ads.Example.COM", "ads.example.com"),
    ("localhost", "localhost"),
    ("example.com.", "example.com"),
    ("bücher.example", "xn--bcher-kva.example"),
])
def test_valid_domains(value, expected):
    assert validate_domain(value) == expected


@pytest.mark.parametrize("value", [
    "",
    "-leading.example.com",
    "under_score.example.com",
    "a" * 64 + ".example.com",
    ".".join(["a" * 60] * 5),
    "0.0.0.0 ads.example.com",
    "*.example.com",
])
def test_invalid_domains(value):
    assert validate_domain(value) is None


def test_hostname_length_limit():
    assert not is_hostname("a" * 254)


def test_to_ascii_leaves_unencodable_input_alone():
    assert to_ascii("bad domain!") == "bad domain!"


def test_validate_dispatches_by_kind():
    pattern = r"(^|\.)ads[0-9]+\.example\.com$"

    assert validate(pattern, ListKind.REGEX_BLACKLIST) == pattern
    assert validate(pattern, ListKind.BLACKLIST) is None
    assert validate("ADS.example.com", ListKind.WHITELIST) == "ads.example.com"
    assert validate("ads.example.com", ListKind.ADLIST) is None
