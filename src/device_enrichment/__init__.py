"""
Device Enrichment - Multi-protocol identification of discovered network devices.

Given an IP address (and optionally a MAC address) found by a network scan,
the enricher probes the device over SNMP, IPP, mDNS, SSDP, HTTP and ONVIF,
falls back to a MAC OUI vendor lookup, and merges what it learns into a
single confidence-scored identity record.

Every probe is bounded by short timeouts and an overall per-device
deadline. Network failures never propagate: an unreachable device yields
an empty record with zero confidence.
"""

__version__ = "1.0.0"

from ._types import (
    DeviceType,
    EnrichedDevice,
    EnrichmentStatus,
    ProbeResult,
    Protocol,
)
from .config import EnrichmentConfig
from .enricher import DeviceEnricher, enrich_device
from .merge import apply_probe_result, calculate_confidence

__all__ = [
    "__version__",
    "DeviceType",
    "EnrichedDevice",
    "EnrichmentStatus",
    "ProbeResult",
    "Protocol",
    "EnrichmentConfig",
    "DeviceEnricher",
    "enrich_device",
    "apply_probe_result",
    "calculate_confidence",
]
