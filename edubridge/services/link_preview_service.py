"""Fetch OpenGraph style metadata for links shared in posts."""
from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass
from html.parser import HTMLParser
from urllib.parse import urljoin, urlparse

import httpx

logger = logging.getLogger(__name__)

_MAX_BODY_BYTES = 512 * 1024
_USER_AGENT = "EdubridgeLinkPreview/1.0 (+https://edubridgepeople.org)"
_MAX_REDIRECTS = 3
_REDIRECT_STATUSES = {301, 302, 303, 307, 308}


@dataclass(frozen=True)
class LinkPreview:
    url: str
    title: str | None = None
    description: str | None = None
    image: str | None = None


class _MetaTagParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.meta: dict[str, str] = {}
        self.title_parts: list[str] = []
        self._in_title = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "title":
            self._in_title = True
            return
        if tag != "meta":
            return
        values = {key.lower(): (value or "") for key, value in attrs}
        key = (values.get("property") or values.get("name") or "").strip().lower()
        content = values.get("content", "").strip()
        if key and content and key not in self.meta:
            self.meta[key] = content

    def handle_endtag(self, tag: str) -> None:
        if tag == "title":
            self._in_title = False

    def handle_data(self, data: str) -> None:
        if self._in_title:
            self.title_parts.append(data)


def _first(meta: dict[str, str], *keys: str) -> str | None:
    for key in keys:
        value = meta.get(key)
        if value:
            return value
    return None


def parse_link_preview(url: str, html: str) -> LinkPreview:
    """Extract title, description and image from ``html`` served at ``url``."""

    parser = _MetaTagParser()
    parser.feed(html)
    parser.close()

    title = _first(parser.meta, "og:title", "twitter:title")
    if not title:
        title = " ".join("".join(parser.title_parts).split()) or None
    description = _first(parser.meta, "og:description", "twitter:description", "description")
    image = _first(parser.meta, "og:image", "og:image:url", "twitter:image")
    if image:
        image = urljoin(url, image)
    return LinkPreview(url=url, title=title, description=description, image=image)


def _resolve_addresses(host: str, port: int) -> list[str]:
    infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def is_public_url(url: str) -> bool:
    """True when ``url`` is http(s) and every address its host resolves to is globally routable."""

    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        return False
    try:
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        addresses = _resolve_addresses(parsed.hostname, port)
    except (OSError, ValueError, UnicodeError):
        return False
    if not addresses:
        return False
    for address in addresses:
        try:
            ip = ipaddress.ip_address(address.split("%", 1)[0])
        except ValueError:
            return False
        if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        if not ip.is_global or ip.is_multicast:
            return False
    return True


def fetch_link_preview(
    url: str,
    *,
    timeout: float = 4.0,
    transport: httpx.BaseTransport | None = None,
) -> LinkPreview | None:
    """Fetch ``url`` and build a preview; returns ``None`` when anything goes wrong.

    Only hosts resolving to public addresses are contacted, and redirects are
    followed by hand so that every hop passes the same check.
    """

    current = url
    try:
        with httpx.Client(
            timeout=timeout,
            follow_redirects=False,
            headers={"User-Agent": _USER_AGENT},
            transport=transport,
        ) as client:
            for _ in range(_MAX_REDIRECTS + 1):
                if not is_public_url(current):
                    logger.warning("Refusing link preview for non-public address %s", current)
                    return None
                with client.stream("GET", current) as response:
                    if response.status_code in _REDIRECT_STATUSES:
                        location = response.headers.get("location")
                        if not location:
                            return None
                        current = urljoin(current, location)
                        continue
                    response.raise_for_status()
                    content_type = response.headers.get("content-type", "")
                    if "html" not in content_type.lower():
                        return LinkPreview(url=url)
                    body = bytearray()
                    for chunk in response.iter_bytes():
                        body.extend(chunk)
                        if len(body) >= _MAX_BODY_BYTES:
                            break
                    encoding = response.encoding or "utf-8"
                    break
            else:
                logger.warning("Link preview for %s exceeded %d redirects", url, _MAX_REDIRECTS)
                return None
    except httpx.HTTPError as exc:
        logger.warning("Link preview fetch failed for %s: %s", url, type(exc).__name__)
        return None

    return parse_link_preview(url, bytes(body).decode(encoding, errors="replace"))


__all__ = ["LinkPreview", "is_public_url", "parse_link_preview", "fetch_link_preview"]
