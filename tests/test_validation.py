"""Tests for URL validation and SSRF protection."""

import socket
from unittest.mock import patch

import pytest

from app.models import PageFetchError, ParseError
from app.parser.fetch import validate_url

# -- Blocked schemes --


def test_rejects_file_scheme():
    with pytest.raises(ParseError, match="Only http and https"):
        validate_url("file:///etc/passwd")


def test_rejects_ftp_scheme():
    with pytest.raises(ParseError, match="Only http and https"):
        validate_url("ftp://example.com/file.txt")


def test_rejects_no_scheme():
    with pytest.raises(ParseError, match="Only http and https"):
        validate_url("example.com/recipe")


# -- Blocked private/internal IPs --


def test_rejects_localhost():
    with pytest.raises(ParseError, match="private or internal"):
        validate_url("http://127.0.0.1/")


def test_rejects_localhost_name():
    with pytest.raises(ParseError, match="private or internal"):
        validate_url("http://localhost/")


def test_rejects_class_a_private():
    with pytest.raises(ParseError, match="private or internal"):
        validate_url("http://10.0.0.1/")


def test_rejects_class_b_private():
    with pytest.raises(ParseError, match="private or internal"):
        validate_url("http://172.16.0.1/")


def test_rejects_class_c_private():
    with pytest.raises(ParseError, match="private or internal"):
        validate_url("http://192.168.1.1/")


def test_rejects_link_local_metadata():
    with pytest.raises(ParseError, match="private or internal"):
        validate_url("http://169.254.169.254/latest/meta-data/")


# -- Invalid URLs --


def test_rejects_empty_string():
    with pytest.raises(ParseError):
        validate_url("")


def test_rejects_garbage():
    with pytest.raises(ParseError):
        validate_url("not-a-url-at-all")


def test_rejects_hostname_resolving_to_private_ip():
    with patch(
        "app.parser.fetch.socket.getaddrinfo",
        return_value=[(2, 1, 6, "", ("10.1.2.3", 0))],
    ):
        with pytest.raises(PageFetchError, match="private or internal"):
            validate_url("https://recipes.internal.example/")


def test_unresolvable_hostname():
    with patch(
        "app.parser.fetch.socket.getaddrinfo", side_effect=socket.gaierror("nope")
    ):
        with pytest.raises(PageFetchError, match="Couldn't find that website") as e:
            validate_url("https://no-such-host.example/")
    assert e.value.error_type == "network"


# -- Valid URLs --

PUBLIC_ADDRINFO = [(2, 1, 6, "", ("93.184.216.34", 0))]


@patch("app.parser.fetch.socket.getaddrinfo", return_value=PUBLIC_ADDRINFO)
def test_accepts_http(mock_dns):
    validate_url("http://example.com/recipe")
    mock_dns.assert_called_once_with("example.com", None)


@patch("app.parser.fetch.socket.getaddrinfo", return_value=PUBLIC_ADDRINFO)
def test_accepts_https(mock_dns):
    validate_url("https://www.allrecipes.com/recipe/12345")
