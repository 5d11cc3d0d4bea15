"""
SlideFoundry - SSRF Guard
=========================

Validates URLs before any socket is opened and again after redirects.
A URL is accepted only when its scheme is http(s) and every address its
host resolves to is public.
"""

import asyncio
import ipaddress
import socket
from typing import List
from urllib.parse import urlparse

import structlog

from slidefoundry.core.errors import DeckError, ErrorCode

logger = structlog.get_logger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def is_private_ip(address: str) -> bool:
    """
    True for any address that must never be fetched.

    Covers loopback, RFC 1918, carrier-grade NAT, link-local, unique-local,
    unspecified, multicast and reserved ranges, plus anything else that is
    not globally routable; IPv4-mapped IPv6 is judged as IPv4.
    Anything that does not parse as an IP is treated as private.
    """
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0].strip("[]"))
    except ValueError:
        return True

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
        or not ip.is_global
    )


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return False
    return True


def _is_local_hostname(host: str) -> bool:
    return host == "localhost" or host.endswith(".localhost") or host.endswith(".local")


async def resolve_host_addresses(hostname: str) -> List[str]:
    """Resolve every A/AAAA record for hostname."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    addresses: List[str] = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        address = str(sockaddr[0])
        if address not in addresses:
            addresses.append(address)
    return addresses


async def assert_safe_public_url(url: str) -> str:
    """
    Raise DeckError unless url is an http(s) URL pointing at public hosts.

    Args:
        url: Absolute URL to validate

    Returns:
        The validated URL, unchanged
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as e:
        raise DeckError(ErrorCode.INVALID_URL, f"Invalid URL: {url}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise DeckError(
            ErrorCode.URL_SCHEME_NOT_ALLOWED,
            f"Only http and https URLs are allowed, got '{parsed.scheme or 'none'}'",
        )

    if not hostname:
        raise DeckError(ErrorCode.INVALID_URL, f"Invalid URL: {url}")

    if parsed.username or parsed.password:
        raise DeckError(ErrorCode.INVALID_URL, "URLs with embedded credentials are not allowed")

    host = hostname.lower().rstrip(".")

    if _is_local_hostname(host):
        logger.warning("Blocked local hostname", host=host)
        raise DeckError(ErrorCode.URL_PRIVATE_ADDRESS, "Local hostnames are not allowed")

    if _is_ip_literal(host):
        if is_private_ip(host):
            logger.warning("Blocked private IP literal", host=host)
            raise DeckError(ErrorCode.URL_PRIVATE_ADDRESS, "Private network addresses are not allowed")
        return url

    try:
        addresses = await resolve_host_addresses(host)
    except (socket.gaierror, UnicodeError, OSError) as e:
        logger.info("Host resolution failed", host=host, error=str(e))
        raise DeckError(ErrorCode.URL_HOST_UNRESOLVED, f"Could not resolve host '{host}'") from e

    if not addresses:
        raise DeckError(ErrorCode.URL_PRIVATE_ADDRESS, f"Host '{host}' has no public address")

    for address in addresses:
        if is_private_ip(address):
            logger.warning("Blocked host resolving to private address", host=host, address=address)
            raise DeckError(
                ErrorCode.URL_PRIVATE_ADDRESS,
                f"Host '{host}' resolves to a private network address",
            )

    return url
