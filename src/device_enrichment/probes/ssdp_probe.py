"""
SSDP / UPnP enrichment probe.

An M-SEARCH is sent unicast to the target's port 1900 rather than to the
multicast group, and only a reply mentioning the target's own address is
accepted so that other devices on a shared segment cannot answer for it.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .._types import ProbeResult, Protocol
from ..classification import SSDP_SERVER_TYPE_RULES, SSDP_VENDORS, classify_by_rules, match_vendor
from .base import Deadline, EnrichmentProbe
from .transport import udp_request

logger = logging.getLogger(__name__)

SSDP_MULTICAST_HOST = "239.255.255.250:1900"
RAW_EVIDENCE_CHARS = 500

M_SEARCH = (
    "M-SEARCH * HTTP/1.1\r\n"
    f"HOST: {SSDP_MULTICAST_HOST}\r\n"
    'MAN: "ssdp:discover"\r\n'
    "MX: 3\r\n"
    "ST: ssdp:all\r\n"
    "\r\n"
).encode("ascii")


def parse_ssdp_headers(response: str) -> dict[str, str]:
    """Parse HTTP-over-UDP response headers into a lowercase-keyed dict."""
    headers: dict[str, str] = {}
    for line in response.replace("\r\n", "\n").split("\n")[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip().lower()
        if key and key not in headers:
            headers[key] = value.strip()
    return headers


def parse_ssdp_response(response: str) -> dict[str, Optional[str]]:
    """
    Extract classification hints from an SSDP reply.

    Returns server, location, device_type and manufacturer (each may be None).
    """
    headers = parse_ssdp_headers(response)
    server = headers.get("server")
    return {
        "server": server,
        "location": headers.get("location"),
        "device_type": classify_by_rules(server, SSDP_SERVER_TYPE_RULES),
        "manufacturer": match_vendor(server, SSDP_VENDORS),
    }


class SSDPProbe(EnrichmentProbe):
    """Identify UPnP devices from their SSDP SERVER header."""

    def __init__(self, port: int = 1900, timeout: float = 4.0):
        self.port = port
        self.timeout = timeout

    @property
    def protocol(self) -> Protocol:
        return Protocol.SSDP

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        target = ip_address.encode("ascii")
        ip_pattern = re.compile(rb"(?<![\d.])" + re.escape(target) + rb"(?![\d])")

        data = await udp_request(
            ip_address,
            self.port,
            M_SEARCH,
            timeout=deadline.clamp(self.timeout),
            accept=lambda payload, addr: bool(ip_pattern.search(payload)),
        )
        if not data:
            logger.debug(f"No SSDP reply from {ip_address}")
            return ProbeResult.failed(Protocol.SSDP)

        response = data.decode("utf-8", errors="ignore")
        parsed = parse_ssdp_response(response)

        evidence = {"raw": response[:RAW_EVIDENCE_CHARS]}
        if parsed["server"]:
            evidence["server"] = parsed["server"]
        if parsed["location"]:
            evidence["location"] = parsed["location"]

        logger.info(f"SSDP success for {ip_address}")
        return ProbeResult(
            protocol=Protocol.SSDP,
            success=True,
            manufacturer=parsed["manufacturer"],
            device_type=parsed["device_type"],
            evidence=evidence,
        )
