"""
HTTP banner enrichment probe.

Candidate ports are tried in order and the probe stops at the first one
that answers with any status code. TLS verification is off: these are
unauthenticated devices on the local network with self-signed certs.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import aiohttp

from .._types import ProbeResult, Protocol
from ..classification import HTTP_SERVER_TYPE_RULES, HTTP_VENDORS, classify_by_rules, match_vendor
from .base import Deadline, EnrichmentProbe

logger = logging.getLogger(__name__)

_TITLE = re.compile(r"<title[^>]*>([^<]+)</title>", re.I)
_MODEL_IN_TITLE = re.compile(r"([A-Z0-9]+-[A-Z0-9]+|[A-Z][0-9]{3,}[A-Z]?)")


@dataclass
class HttpBanner:
    """What a device sent back for GET /."""
    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def server(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "server":
                return value
        return None


def extract_title(body: str) -> Optional[str]:
    """Return the stripped HTML <title>, if any."""
    match = _TITLE.search(body or "")
    if not match:
        return None
    title = match.group(1).strip()
    return title or None


def extract_model_from_title(title: Optional[str]) -> Optional[str]:
    """Pick a model-like token (e.g. "DS-2CD2042WD", "M404") out of a page title."""
    if not title:
        return None
    match = _MODEL_IN_TITLE.search(title)
    return match.group(1) if match else None


def parse_http_banner(banner: HttpBanner) -> dict[str, Optional[str]]:
    """Classify a device from its Server header and page title."""
    server = banner.server
    title = extract_title(banner.body)
    return {
        "server": server,
        "title": title,
        "device_type": classify_by_rules(server, HTTP_SERVER_TYPE_RULES),
        "manufacturer": match_vendor(server, HTTP_VENDORS),
        "model": extract_model_from_title(title),
    }


class HTTPProbe(EnrichmentProbe):
    """Identify a device from its web interface banner."""

    def __init__(
        self,
        ports: Optional[list[int]] = None,
        https_ports: Optional[list[int]] = None,
        timeout: float = 3.0,
        max_body_bytes: int = 65536,
    ):
        self.ports = ports or [80, 443, 8080, 8443]
        self.https_ports = set(https_ports if https_ports is not None else [443, 8443])
        self.timeout = timeout
        self.max_body_bytes = max_body_bytes

    @property
    def protocol(self) -> Protocol:
        return Protocol.HTTP

    def url_for(self, ip_address: str, port: int) -> str:
        scheme = "https" if port in self.https_ports else "http"
        return f"{scheme}://{ip_address}:{port}/"

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        async with aiohttp.ClientSession() as session:
            for port in self.ports:
                timeout = deadline.clamp(self.timeout)
                if timeout <= 0:
                    logger.debug(f"HTTP deadline reached for {ip_address}")
                    break

                banner = await self._fetch(session, self.url_for(ip_address, port), timeout)
                if banner is None:
                    continue

                parsed = parse_http_banner(banner)
                port_evidence = {"status": banner.status, "headers": banner.headers}
                if parsed["server"]:
                    port_evidence["server"] = parsed["server"]
                if parsed["title"]:
                    port_evidence["title"] = parsed["title"]

                logger.info(f"HTTP success for {ip_address}:{port}")
                return ProbeResult(
                    protocol=Protocol.HTTP,
                    success=True,
                    manufacturer=parsed["manufacturer"],
                    model=parsed["model"],
                    device_type=parsed["device_type"],
                    open_ports=(port,),
                    evidence={f"port{port}": port_evidence},
                )

        return ProbeResult.failed(Protocol.HTTP)

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        url: str,
        timeout: float,
    ) -> Optional[HttpBanner]:
        """GET url without following redirects; None if nothing answered."""
        try:
            async with session.get(
                url,
                allow_redirects=False,
                ssl=False,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                raw = await self._read_body(resp)
                return HttpBanner(
                    url=url,
                    status=resp.status,
                    headers={k: v for k, v in resp.headers.items()},
                    body=raw.decode("utf-8", errors="ignore"),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.debug(f"HTTP {url} no answer: {type(e).__name__}")
            return None

    async def _read_body(self, resp: aiohttp.ClientResponse) -> bytes:
        """Read until EOF or max_body_bytes, whichever comes first."""
        chunks: list[bytes] = []
        size = 0
        async for chunk in resp.content.iter_chunked(4096):
            chunks.append(chunk)
            size += len(chunk)
            if size >= self.max_body_bytes:
                break
        return b"".join(chunks)[:self.max_body_bytes]
