"""
Protocol probes for device enrichment.

Each probe implements the same interface:
- async probe(ip_address, mac_address, deadline) -> ProbeResult

Probes, in the order the enricher runs them:
- SNMP: v2c GET of system and entity MIB identity OIDs
- IPP: Get-Printer-Attributes on port 631
- mDNS: DNS-SD printer advertisements via host tooling
- SSDP: UPnP SERVER header from a unicast M-SEARCH
- HTTP: web interface Server header and page title
- ONVIF: WS-Discovery Probe for IP cameras
- OUI: MAC prefix vendor lookup (fallback only)
"""

from .base import Deadline, EnrichmentProbe
from .snmp_probe import SNMPProbe, SnmpClient, PysnmpClient
from .ipp_probe import IPPProbe
from .mdns_probe import MDNSProbe, MdnsBackend, MdnsRecord, AvahiBrowseBackend, DnsSdBackend
from .ssdp_probe import SSDPProbe
from .http_probe import HTTPProbe, HttpBanner
from .onvif_probe import ONVIFProbe
from .oui_probe import OUIProbe

__all__ = [
    "Deadline",
    "EnrichmentProbe",
    "SNMPProbe",
    "SnmpClient",
    "PysnmpClient",
    "IPPProbe",
    "MDNSProbe",
    "MdnsBackend",
    "MdnsRecord",
    "AvahiBrowseBackend",
    "DnsSdBackend",
    "SSDPProbe",
    "HTTPProbe",
    "HttpBanner",
    "ONVIFProbe",
    "OUIProbe",
]
