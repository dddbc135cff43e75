"""
IPP (Internet Printing Protocol) enrichment probe.

Sends a minimal Get-Printer-Attributes request over raw TCP and scrapes
the reply for printer identity. The reply is not fully decoded: named
attributes are looked up in place, then text regexes are used as a
fallback for replies that do not follow the expected layout.
"""

from __future__ import annotations

import logging
import re
import struct
from typing import Optional

from .._types import DeviceType, ProbeResult, Protocol
from ..classification import PRINTER_VENDORS, extract_manufacturer
from .base import Deadline, EnrichmentProbe
from .transport import check_tcp_port, send_tcp_request

logger = logging.getLogger(__name__)

IPP_VERSION = (1, 1)
OP_GET_PRINTER_ATTRIBUTES = 0x000B
REQUEST_ID = 1

# Delimiter and value tags
TAG_OPERATION_ATTRIBUTES = 0x01
TAG_END_OF_ATTRIBUTES = 0x03
TAG_URI = 0x45
TAG_CHARSET = 0x47
TAG_NATURAL_LANGUAGE = 0x48

MAX_SCRAPE_BYTES = 2000

_MAKE_MODEL_TEXT = re.compile(r"make-and-model[^:\n]*:([^,\n]+)", re.I)
_VENDOR_TEXT = re.compile(
    r"(?<![A-Za-z])(?:%s)(?![A-Za-z])[^\n]{0,50}" % "|".join(re.escape(v) for v in PRINTER_VENDORS),
    re.I,
)
_SERIAL_TEXT = re.compile(r"serial[- ]?number[^:\n]*:\s*([A-Z0-9]+)", re.I)
_NON_PRINTABLE = re.compile(r"[^\x20-\x7e]+")


def _attribute(tag: int, name: str, value: str) -> bytes:
    name_bytes = name.encode("ascii")
    value_bytes = value.encode("utf-8")
    return (
        struct.pack(">BH", tag, len(name_bytes))
        + name_bytes
        + struct.pack(">H", len(value_bytes))
        + value_bytes
    )


def build_get_printer_attributes(ip_address: str, port: int = 631) -> bytes:
    """Build the binary Get-Printer-Attributes request for a printer."""
    return b"".join((
        struct.pack(">BBHI", IPP_VERSION[0], IPP_VERSION[1], OP_GET_PRINTER_ATTRIBUTES, REQUEST_ID),
        bytes([TAG_OPERATION_ATTRIBUTES]),
        _attribute(TAG_CHARSET, "attributes-charset", "utf-8"),
        _attribute(TAG_NATURAL_LANGUAGE, "attributes-natural-language", "en-us"),
        _attribute(TAG_URI, "printer-uri", f"ipp://{ip_address}:{port}/ipp/print"),
        bytes([TAG_END_OF_ATTRIBUTES]),
    ))


def find_attribute(data: bytes, name: str) -> Optional[str]:
    """
    Look up the first value of a named attribute in an IPP reply.

    The name must be preceded by its own 2-byte length to count as an
    attribute, which keeps matches inside other values out.
    """
    needle = name.encode("ascii")
    start = 0
    while True:
        idx = data.find(needle, start)
        if idx < 0:
            return None
        start = idx + 1
        if idx < 2 or struct.unpack(">H", data[idx - 2:idx])[0] != len(needle):
            continue
        value_at = idx + len(needle)
        if value_at + 2 > len(data):
            return None
        (length,) = struct.unpack(">H", data[value_at:value_at + 2])
        raw = data[value_at + 2:value_at + 2 + length]
        value = raw.decode("utf-8", errors="ignore").strip()
        return value or None


def parse_device_id(device_id: str) -> dict[str, str]:
    """
    Parse an IEEE 1284 device ID (e.g. "MFG:HP;MDL:LaserJet M404n;SN:CN123;").

    Keys are normalized to mfg, mdl and sn.
    """
    aliases = {
        "MFG": "mfg", "MANUFACTURER": "mfg",
        "MDL": "mdl", "MODEL": "mdl",
        "SN": "sn", "SERN": "sn", "SERIALNUMBER": "sn",
    }
    out: dict[str, str] = {}
    for part in device_id.split(";"):
        if ":" not in part:
            continue
        key, value = part.split(":", 1)
        norm = aliases.get(key.strip().upper())
        if norm and value.strip() and norm not in out:
            out[norm] = value.strip()
    return out


def parse_ipp_response(data: bytes) -> dict[str, str]:
    """
    Extract printer identity from a raw IPP reply.

    Returns a dict with any of: make_model, manufacturer, model, serial,
    firmware. Missing keys mean that piece was not found.
    """
    out: dict[str, str] = {}
    head = data[:MAX_SCRAPE_BYTES * 4]

    make_model = find_attribute(head, "printer-make-and-model")
    device_id = find_attribute(head, "printer-device-id")
    firmware = find_attribute(head, "printer-firmware-string-version")

    ids = parse_device_id(device_id) if device_id else {}
    if device_id:
        out["device_id"] = device_id

    if not make_model and ids.get("mdl"):
        make_model = f"{ids['mfg']} {ids['mdl']}" if ids.get("mfg") else ids["mdl"]

    # Text fallback for replies that are not laid out as expected
    text = _NON_PRINTABLE.sub("\n", data[:MAX_SCRAPE_BYTES].decode("latin-1"))
    if not make_model:
        match = _MAKE_MODEL_TEXT.search(text)
        if match:
            make_model = match.group(1).strip()
        else:
            match = _VENDOR_TEXT.search(text)
            if match:
                make_model = match.group(0).strip()

    if make_model:
        out["make_model"] = make_model
        out["model"] = make_model
        out["manufacturer"] = ids.get("mfg") or extract_manufacturer(make_model)
    elif ids.get("mfg"):
        out["manufacturer"] = ids["mfg"]

    serial = ids.get("sn")
    if not serial:
        match = _SERIAL_TEXT.search(text)
        if match:
            serial = match.group(1).strip()
    if serial:
        out["serial"] = serial

    if firmware:
        out["firmware"] = firmware

    return out


class IPPProbe(EnrichmentProbe):
    """
    Identify printers over IPP.

    Any reply on port 631 marks the device as a printer, even if nothing
    else could be scraped from it.
    """

    def __init__(
        self,
        port: int = 631,
        connect_timeout: float = 2.0,
        read_timeout: float = 5.0,
    ):
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    @property
    def protocol(self) -> Protocol:
        return Protocol.IPP

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        if not await check_tcp_port(ip_address, self.port, deadline.clamp(self.connect_timeout)):
            logger.debug(f"IPP port {self.port} closed on {ip_address}")
            return ProbeResult.failed(Protocol.IPP)

        request = build_get_printer_attributes(ip_address, self.port)
        response = await send_tcp_request(
            ip_address,
            self.port,
            request,
            connect_timeout=deadline.clamp(self.connect_timeout),
            read_timeout=deadline.clamp(self.read_timeout),
        )
        if not response:
            logger.debug(f"IPP port open on {ip_address} but no reply")
            return ProbeResult.failed(Protocol.IPP)

        parsed = parse_ipp_response(response)
        evidence = {"response_bytes": len(response)}
        if "make_model" in parsed:
            evidence["makeModel"] = parsed["make_model"]
        if "serial" in parsed:
            evidence["serial"] = parsed["serial"]
        if "device_id" in parsed:
            evidence["deviceId"] = parsed["device_id"]
        if "firmware" in parsed:
            evidence["firmware"] = parsed["firmware"]

        logger.info(f"IPP success for {ip_address}")
        return ProbeResult(
            protocol=Protocol.IPP,
            success=True,
            manufacturer=parsed.get("manufacturer"),
            model=parsed.get("model"),
            serial_number=parsed.get("serial"),
            firmware_version=parsed.get("firmware"),
            device_type=DeviceType.PRINTER.value,
            device_type_authoritative=True,
            open_ports=(self.port,),
            evidence=evidence,
        )
