"""
Shared vendor and device-type classification tables.

Every probe classifies through this module so that vendor spellings and
keyword rules cannot drift between protocols.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from ._types import DeviceType

# Canonical vendor spellings, in match priority order
KNOWN_VENDORS = (
    "HP", "Canon", "Epson", "Brother", "Xerox", "Ricoh", "Lexmark",
    "Cisco", "Juniper", "Aruba", "Ubiquiti", "TP-Link", "D-Link",
    "Synology", "QNAP", "Buffalo", "Netgear",
    "Hikvision", "Dahua", "Axis", "Sony",
)

PRINTER_VENDORS = ("HP", "Canon", "Epson", "Brother", "Xerox", "Ricoh", "Lexmark")

CAMERA_VENDORS = ("Hikvision", "Dahua", "Axis", "Sony")

# Vendors recognised in a UPnP SERVER header
SSDP_VENDORS = ("Synology", "QNAP", "Netgear", "TP-Link", "D-Link", "Hikvision", "Dahua")

# Vendors recognised in an HTTP Server header
HTTP_VENDORS = (
    "HP", "Canon", "Epson", "Brother", "Cisco", "Juniper", "Aruba",
    "Synology", "QNAP", "Hikvision", "Dahua", "Ubiquiti", "TP-Link",
)

# Enterprise OID prefixes from sysObjectID
SNMP_OBJECT_ID_PREFIXES = (
    ("1.3.6.1.4.1.11.", DeviceType.PRINTER),    # HP
    ("1.3.6.1.4.1.9.", DeviceType.SWITCH),      # Cisco
    ("1.3.6.1.4.1.2636.", DeviceType.ROUTER),   # Juniper
    ("1.3.6.1.4.1.43.", DeviceType.SWITCH),     # 3Com
)

# Keyword rules are (pattern, device type); first match wins.
SYSDESCR_TYPE_RULES = (
    (re.compile(r"printer|laserjet|inkjet|photosmart", re.I), DeviceType.PRINTER),
    (re.compile(r"switch|catalyst", re.I), DeviceType.SWITCH),
    (re.compile(r"router|gateway|firewall", re.I), DeviceType.ROUTER),
    (re.compile(r"access[ -]?point|\bap\b", re.I), DeviceType.ACCESS_POINT),
    (re.compile(r"storage|\bnas\b", re.I), DeviceType.NAS),
)

SSDP_SERVER_TYPE_RULES = (
    (re.compile(r"camera|nvr|ipc", re.I), DeviceType.CAMERA),
    (re.compile(r"nas|storage", re.I), DeviceType.NAS),
    (re.compile(r"router|gateway", re.I), DeviceType.ROUTER),
)

HTTP_SERVER_TYPE_RULES = (
    (re.compile(r"printer|cups|ipp", re.I), DeviceType.PRINTER),
    (re.compile(r"camera|ipcam|dvr|nvr", re.I), DeviceType.CAMERA),
    (re.compile(r"nas|storage", re.I), DeviceType.NAS),
    (re.compile(r"router|gateway|switch", re.I), DeviceType.NETWORK_DEVICE),
)

# Device class implied by a vendor when nothing better is known (OUI hints)
VENDOR_DEVICE_TYPES = {
    "Canon": DeviceType.PRINTER,
    "Brother": DeviceType.PRINTER,
    "Epson": DeviceType.PRINTER,
    "Xerox": DeviceType.PRINTER,
    "Cisco": DeviceType.NETWORK_DEVICE,
    "Ubiquiti": DeviceType.NETWORK_DEVICE,
    "Synology": DeviceType.NAS,
    "QNAP": DeviceType.NAS,
}

_FIRMWARE_PATTERNS = (
    re.compile(r"\b(?:firmware|fw)\s*(?:version)?\s*[:=]?\s*([0-9][\w.\-()]*)", re.I),
    re.compile(r"\bversion\s*[:=]?\s*([0-9][\w.\-()]*)", re.I),
    re.compile(r"\bv\s?([0-9]+\.[0-9]+(?:\.[0-9]+)*)\b", re.I),
)

_vendor_patterns: dict[str, re.Pattern] = {}


def _vendor_pattern(vendor: str) -> re.Pattern:
    pattern = _vendor_patterns.get(vendor)
    if pattern is None:
        # Letter boundaries keep "HP" from matching inside "PHP"
        pattern = re.compile(
            rf"(?<![A-Za-z]){re.escape(vendor)}(?![A-Za-z])", re.I
        )
        _vendor_patterns[vendor] = pattern
    return pattern


def match_vendor(text: Optional[str], vendors: Iterable[str] = KNOWN_VENDORS) -> Optional[str]:
    """Return the canonical name of the first vendor mentioned in text."""
    if not text:
        return None
    for vendor in vendors:
        if _vendor_pattern(vendor).search(text):
            return vendor
    return None


def extract_manufacturer(model_string: Optional[str]) -> Optional[str]:
    """
    Derive a manufacturer from a make-and-model string.

    Known vendors are matched case-insensitively; otherwise the first
    whitespace or hyphen delimited token is used.
    """
    if not model_string or not model_string.strip():
        return None
    vendor = match_vendor(model_string)
    if vendor:
        return vendor
    token = re.split(r"[\s\-]+", model_string.strip())[0]
    return token or None


def classify_by_rules(
    text: Optional[str],
    rules: Sequence[tuple[re.Pattern, DeviceType]],
) -> Optional[str]:
    """Apply ordered keyword rules to text, first match wins."""
    if not text:
        return None
    for pattern, device_type in rules:
        if pattern.search(text):
            return device_type.value
    return None


def infer_snmp_device_type(sys_object_id: Optional[str], sys_descr: Optional[str]) -> str:
    """
    Infer a device type from SNMP system data.

    sysObjectID enterprise prefixes take priority, then sysDescr keywords,
    then the generic network-device class.
    """
    if sys_object_id:
        oid = sys_object_id.strip().lstrip(".")
        for prefix, device_type in SNMP_OBJECT_ID_PREFIXES:
            if oid.startswith(prefix):
                return device_type.value

    by_descr = classify_by_rules(sys_descr, SYSDESCR_TYPE_RULES)
    if by_descr:
        return by_descr

    return DeviceType.NETWORK_DEVICE.value


def extract_firmware_version(text: Optional[str]) -> Optional[str]:
    """Pull a firmware/software version token out of a description string."""
    if not text:
        return None
    for pattern in _FIRMWARE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).rstrip(".,;")
    return None
