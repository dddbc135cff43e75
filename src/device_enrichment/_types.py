"""
Type definitions for device enrichment.

These dataclasses define the enrichment record handed back to the caller
and the per-probe partial results that are merged into it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


class Protocol(str, Enum):
    """Protocols an enrichment probe can speak, in probe priority order."""
    SNMP = "SNMP"
    IPP = "IPP"
    MDNS = "mDNS"
    SSDP = "SSDP"
    HTTP = "HTTP"
    ONVIF = "ONVIF"
    OUI = "OUI"

    @property
    def evidence_key(self) -> str:
        """Key under which this protocol's evidence is stored."""
        return self.value.lower()


class DeviceType(str, Enum):
    """Device classes the enrichment engine can infer."""
    PRINTER = "printer"
    SWITCH = "switch"
    ROUTER = "router"
    ACCESS_POINT = "access-point"
    NAS = "nas"
    CAMERA = "camera"
    NETWORK_DEVICE = "network-device"
    UNKNOWN = "unknown"  # Placeholder, never written to a record


class EnrichmentStatus(str, Enum):
    """Enrichment lifecycle status."""
    PENDING = "pending"
    ENRICHING = "enriching"
    COMPLETE = "complete"
    FAILED = "failed"


# Identity fields that follow the first-successful-write-wins rule
IDENTITY_FIELDS = (
    "hostname",
    "manufacturer",
    "model",
    "serial_number",
    "firmware_version",
)


@dataclass(frozen=True)
class ProbeResult:
    """
    Evidence produced by a single protocol probe.

    Probes never touch the enrichment record directly. The coordinator
    merges each result in probe order (see merge.apply_probe_result).
    """
    protocol: Protocol
    success: bool = False

    hostname: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    firmware_version: Optional[str] = None
    device_type: Optional[str] = None

    # IPP and ONVIF know the device class for certain and may refine
    # a type set by an earlier, less specific probe.
    device_type_authoritative: bool = False

    open_ports: tuple[int, ...] = ()
    evidence: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, protocol: Protocol) -> "ProbeResult":
        """Result for a probe that got no answer."""
        return cls(protocol=protocol, success=False)


@dataclass
class EnrichedDevice:
    """
    Identity record for a single device.

    Created empty at the start of an enrichment call, filled in by the
    coordinator from probe results, then finalized with a confidence score.
    """
    ip_address: str
    mac_address: Optional[str] = None

    hostname: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    firmware_version: Optional[str] = None
    device_type: Optional[str] = None

    protocols: list[str] = field(default_factory=list)
    open_ports: list[int] = field(default_factory=list)
    confidence: float = 0.0
    evidence: dict[str, Any] = field(default_factory=dict)

    status: EnrichmentStatus = EnrichmentStatus.PENDING
    enriched_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation for the external store."""
        return {
            "ip_address": self.ip_address,
            "mac_address": self.mac_address,
            "hostname": self.hostname,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "serial_number": self.serial_number,
            "firmware_version": self.firmware_version,
            "device_type": self.device_type,
            "protocols": list(self.protocols),
            "open_ports": list(self.open_ports),
            "confidence": self.confidence,
            "evidence": self.evidence,
            "status": self.status.value,
            "enriched_at": self.enriched_at.isoformat() if self.enriched_at else None,
        }
