"""Fetch the raw markup of a recipe page."""

import ipaddress
import logging
import socket
from urllib.parse import urlparse

import httpx

from app.models import PageFetchError, RawPage

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

REQUEST_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


_BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def validate_url(url: str) -> None:
    """Validate URL scheme and block requests to private/reserved IPs."""
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        logger.warning("Rejected URL with scheme %r: %s", parsed.scheme, url)
        raise PageFetchError("validation", "Only http and https URLs are supported.")

    hostname = parsed.hostname
    if not hostname:
        logger.warning("Rejected URL with no hostname: %s", url)
        raise PageFetchError("validation", "Invalid URL.")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        logger.warning("DNS resolution failed for %s", hostname)
        raise PageFetchError(
            "network", "Couldn't find that website. Check the URL for typos."
        )

    for _, _, _, _, sockaddr in addrinfos:
        ip = ipaddress.ip_address(sockaddr[0])
        for network in _BLOCKED_NETWORKS:
            if ip.version == network.version and ip in network:
                logger.warning("Blocked private IP %s for hostname %s", ip, hostname)
                raise PageFetchError(
                    "validation",
                    "Requests to private or internal addresses are not allowed.",
                )


async def fetch_page(url: str, timeout: float = 10.0) -> RawPage:
    """Download a page, turning every failure into a PageFetchError."""
    validate_url(url)
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=REQUEST_HEADERS,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.TimeoutException:
        logger.warning("Timeout fetching %s", url)
        raise PageFetchError(
            "network", "Request timed out. The site may be slow or down."
        )
    except httpx.ConnectError:
        logger.warning("Connection error fetching %s", url)
        raise PageFetchError(
            "network",
            "Couldn't connect to the site. It may be down or the URL may be wrong.",
        )
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.warning("HTTP %d from %s", status, url)
        if status in (401, 403):
            msg = "This site blocked the request. It may require a login or restrict automated access."
        elif status == 404:
            msg = "Page not found. Double-check the URL and make sure it points to a recipe page."
        elif status >= 500:
            msg = "The recipe site is having server issues. Try again in a few minutes."
        else:
            msg = f"The site returned an error (HTTP {status})."
        raise PageFetchError("http", msg, details=f"HTTP {status}")
    except httpx.RequestError as e:
        logger.warning("Request error fetching %s: %s", url, e)
        raise PageFetchError(
            "network",
            "Something went wrong fetching that page. Check the URL and try again.",
        )

    logger.info(
        "Fetched %s (HTTP %d, %d bytes)", url, response.status_code, len(response.text)
    )
    return RawPage(html=response.text, url=url)
