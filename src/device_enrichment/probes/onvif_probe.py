"""
ONVIF WS-Discovery enrichment probe for IP cameras.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Optional

from .._types import DeviceType, ProbeResult, Protocol
from ..classification import CAMERA_VENDORS, match_vendor
from .base import Deadline, EnrichmentProbe
from .transport import udp_request

logger = logging.getLogger(__name__)

RAW_EVIDENCE_CHARS = 500

PROBE_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope" xmlns:a="http://schemas.xmlsoap.org/ws/2004/08/addressing">
  <s:Header>
    <a:Action s:mustUnderstand="1">http://schemas.xmlsoap.org/ws/2005/04/discovery/Probe</a:Action>
    <a:MessageID>uuid:{message_id}</a:MessageID>
    <a:To s:mustUnderstand="1">urn:schemas-xmlsoap-org:ws:2005:04:discovery</a:To>
  </s:Header>
  <s:Body>
    <Probe xmlns="http://schemas.xmlsoap.org/ws/2005/04/discovery">
      <d:Types xmlns:d="http://schemas.xmlsoap.org/ws/2005/04/discovery" xmlns:dp0="http://www.onvif.org/ver10/network/wsdl">dp0:NetworkVideoTransmitter</d:Types>
    </Probe>
  </s:Body>
</s:Envelope>"""

_MFR = re.compile(r"mfr=([^<\s]+)", re.I)
_MODEL = re.compile(r"model=([^<\s]+)", re.I)
# ONVIF scope URIs: onvif://www.onvif.org/hardware/<model>, .../name/<vendor>
_SCOPE_HARDWARE = re.compile(r"onvif://www\.onvif\.org/hardware/([^\s<]+)", re.I)


def build_probe(message_id: Optional[str] = None) -> bytes:
    """Build a WS-Discovery Probe for NetworkVideoTransmitter devices."""
    return PROBE_TEMPLATE.format(message_id=message_id or str(uuid.uuid4())).encode("utf-8")


def parse_onvif_response(response: str) -> dict[str, Optional[str]]:
    """Extract manufacturer and model tokens from a ProbeMatch reply."""
    manufacturer = None
    match = _MFR.search(response)
    if match:
        manufacturer = match.group(1)
    else:
        manufacturer = match_vendor(response, CAMERA_VENDORS)

    model = None
    match = _MODEL.search(response) or _SCOPE_HARDWARE.search(response)
    if match:
        model = match.group(1)

    return {"manufacturer": manufacturer, "model": model}


class ONVIFProbe(EnrichmentProbe):
    """Identify IP cameras through a WS-Discovery Probe."""

    def __init__(self, port: int = 3702, timeout: float = 4.0):
        self.port = port
        self.timeout = timeout

    @property
    def protocol(self) -> Protocol:
        return Protocol.ONVIF

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        target = ip_address.encode("ascii")

        def accept(payload: bytes, addr) -> bool:
            return target in payload or b"ProbeMatch" in payload

        data = await udp_request(
            ip_address,
            self.port,
            build_probe(),
            timeout=deadline.clamp(self.timeout),
            accept=accept,
        )
        if not data:
            logger.debug(f"No ONVIF reply from {ip_address}")
            return ProbeResult.failed(Protocol.ONVIF)

        response = data.decode("utf-8", errors="ignore")
        parsed = parse_onvif_response(response)

        logger.info(f"ONVIF success for {ip_address}")
        return ProbeResult(
            protocol=Protocol.ONVIF,
            success=True,
            manufacturer=parsed["manufacturer"],
            model=parsed["model"],
            device_type=DeviceType.CAMERA.value,
            device_type_authoritative=True,
            evidence={"raw": response[:RAW_EVIDENCE_CHARS]},
        )
