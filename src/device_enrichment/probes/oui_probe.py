"""
MAC OUI vendor lookup, the last-resort manufacturer source.

The public lookup API is tried first; when it fails or rate-limits, a
small embedded table of common vendors is used instead.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

import aiohttp

from .._types import ProbeResult, Protocol
from ..classification import VENDOR_DEVICE_TYPES, match_vendor
from .base import Deadline, EnrichmentProbe

logger = logging.getLogger(__name__)

LOCAL_OUI_TABLE = {
    "000C29": "VMware",
    "005056": "VMware",
    "00155D": "Microsoft",
    "001AA0": "Dell",
    "0010E0": "HP",
    "001B63": "HP",
    "0025B3": "HP",
    "00D0B7": "Intel",
    "00E04C": "Realtek",
    "001E67": "Canon",
    "00176C": "Brother",
    "001714": "Epson",
    "008066": "Xerox",
    "B827EB": "Raspberry Pi",
    "DCA632": "Raspberry Pi",
    "00248C": "Cisco",
    "001F9E": "Cisco",
    "68A86D": "Cisco",
    "002219": "Synology",
    "001132": "QNAP",
    "742B62": "Ubiquiti",
    "DC9FDB": "Ubiquiti",
}


def normalize_oui(mac_address: Optional[str]) -> Optional[str]:
    """
    Reduce a MAC address to its uppercase 6-hex-digit OUI.

    Accepts colon, hyphen, dot or no separators. Returns None when fewer
    than six hex digits are present.
    """
    if not mac_address:
        return None
    digits = re.sub(r"[^0-9A-Fa-f]", "", mac_address)
    if len(digits) < 6:
        return None
    return digits[:6].upper()


def lookup_local_vendor(oui: str) -> Optional[str]:
    return LOCAL_OUI_TABLE.get(oui)


class OUIProbe(EnrichmentProbe):
    """Resolve a manufacturer from the MAC address prefix."""

    def __init__(
        self,
        api_url: str = "https://api.macvendors.com/",
        timeout: float = 3.0,
        use_api: bool = True,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.use_api = use_api

    @property
    def protocol(self) -> Protocol:
        return Protocol.OUI

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        oui = normalize_oui(mac_address)
        if not oui:
            logger.debug(f"No usable MAC for OUI lookup of {ip_address}")
            return ProbeResult.failed(Protocol.OUI)

        vendor = None
        source = None

        timeout = deadline.clamp(self.timeout)
        if self.use_api and timeout > 0:
            vendor = await self._query_api(oui, timeout)
            source = "api"

        if not vendor:
            # API unavailable or rate limited
            vendor = lookup_local_vendor(oui)
            source = "local"

        if not vendor:
            logger.debug(f"OUI {oui} not known for {ip_address}")
            return ProbeResult.failed(Protocol.OUI)

        logger.info(f"OUI success for {ip_address}: {vendor}")
        # API names carry suffixes like "Inc." or "Incorporated"
        canonical = match_vendor(vendor, VENDOR_DEVICE_TYPES)
        hint = VENDOR_DEVICE_TYPES.get(canonical) if canonical else None
        return ProbeResult(
            protocol=Protocol.OUI,
            success=True,
            manufacturer=vendor,
            device_type=hint.value if hint else None,
            evidence={"vendor": vendor, "oui": oui, "source": source},
        )

    def api_request_url(self, oui: str) -> str:
        prefix = ":".join(oui[i:i + 2] for i in range(0, 6, 2))
        return f"{self.api_url.rstrip('/')}/{prefix}"

    async def _query_api(self, oui: str, timeout: float) -> Optional[str]:
        """Ask the vendor API; None on any failure or non-200 reply."""
        url = self.api_request_url(oui)
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as session:
                async with session.get(url) as resp:
                    if resp.status != 200:
                        logger.debug(f"OUI API returned {resp.status} for {oui}")
                        return None
                    text = (await resp.text()).strip()
                    return text or None
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.debug(f"OUI API lookup failed for {oui}: {type(e).__name__}")
            return None
