"""
Device enrichment configuration.

Timeouts are deliberately short: a device that never answers costs at
most the sum of the per-probe timeouts, and never more than the overall
per-device deadline.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Identity OIDs queried after a community answers sysDescr
SNMP_IDENTITY_GETS = 5


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


def _env_list(name: str) -> Optional[list[str]]:
    raw = os.getenv(name, "")
    if not raw.strip():
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class EnrichmentConfig:
    """
    Enrichment engine configuration.

    Per-probe timeouts are in seconds. deadline_seconds bounds the whole
    enrichment of a single device.
    """

    # SNMP (v2c GET)
    snmp_communities: list[str] = field(
        default_factory=lambda: ["public", "private", "snmp", "admin", "itam_public"]
    )
    snmp_port: int = 161
    snmp_timeout: float = 2.0
    snmp_retries: int = 1
    snmp_get_timeout: float = 3.0

    # IPP
    ipp_port: int = 631
    ipp_connect_timeout: float = 2.0
    ipp_read_timeout: float = 5.0

    # mDNS / DNS-SD
    mdns_timeout: float = 6.0
    mdns_service_types: list[str] = field(
        default_factory=lambda: ["_ipp._tcp", "_printer._tcp"]
    )

    # SSDP / UPnP
    ssdp_port: int = 1900
    ssdp_timeout: float = 4.0

    # HTTP banner
    http_ports: list[int] = field(default_factory=lambda: [80, 443, 8080, 8443])
    https_ports: list[int] = field(default_factory=lambda: [443, 8443])
    http_timeout: float = 3.0
    http_max_body_bytes: int = 65536

    # ONVIF WS-Discovery
    onvif_port: int = 3702
    onvif_timeout: float = 4.0

    # MAC OUI fallback
    oui_api_url: str = "https://api.macvendors.com/"
    oui_timeout: float = 3.0
    enable_oui_api: bool = True

    # Probe toggles
    enable_snmp: bool = True
    enable_ipp: bool = True
    enable_mdns: bool = True
    enable_ssdp: bool = True
    enable_http: bool = True
    enable_onvif: bool = True
    enable_oui: bool = True

    # Coordinator
    deadline_seconds: float = 60.0
    max_concurrent_devices: int = 16

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EnrichmentConfig":
        """Load configuration from environment variables."""
        config = cls()

        if communities := _env_list("ENRICH_SNMP_COMMUNITIES"):
            config.snmp_communities = communities
        config.snmp_timeout = float(os.getenv("ENRICH_SNMP_TIMEOUT", str(config.snmp_timeout)))
        config.snmp_retries = int(os.getenv("ENRICH_SNMP_RETRIES", str(config.snmp_retries)))
        config.snmp_get_timeout = float(
            os.getenv("ENRICH_SNMP_GET_TIMEOUT", str(config.snmp_get_timeout))
        )

        if ports := _env_list("ENRICH_HTTP_PORTS"):
            config.http_ports = [int(p) for p in ports]
        config.http_timeout = float(os.getenv("ENRICH_HTTP_TIMEOUT", str(config.http_timeout)))

        if url := os.getenv("ENRICH_OUI_API_URL"):
            config.oui_api_url = url
        config.enable_oui_api = _env_bool("ENRICH_OUI_API", config.enable_oui_api)

        # Probe toggles
        config.enable_snmp = _env_bool("ENRICH_SNMP", True)
        config.enable_ipp = _env_bool("ENRICH_IPP", True)
        config.enable_mdns = _env_bool("ENRICH_MDNS", True)
        config.enable_ssdp = _env_bool("ENRICH_SSDP", True)
        config.enable_http = _env_bool("ENRICH_HTTP", True)
        config.enable_onvif = _env_bool("ENRICH_ONVIF", True)
        config.enable_oui = _env_bool("ENRICH_OUI", True)

        config.deadline_seconds = float(
            os.getenv("ENRICH_DEADLINE_SECONDS", str(config.deadline_seconds))
        )
        config.max_concurrent_devices = int(
            os.getenv("ENRICH_MAX_CONCURRENT", str(config.max_concurrent_devices))
        )

        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "EnrichmentConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "snmp" in data:
            s = data["snmp"]
            config.snmp_communities = s.get("communities", config.snmp_communities)
            config.snmp_port = s.get("port", config.snmp_port)
            config.snmp_timeout = s.get("timeout", config.snmp_timeout)
            config.snmp_retries = s.get("retries", config.snmp_retries)
            config.snmp_get_timeout = s.get("get_timeout", config.snmp_get_timeout)

        if "ipp" in data:
            i = data["ipp"]
            config.ipp_port = i.get("port", config.ipp_port)
            config.ipp_connect_timeout = i.get("connect_timeout", config.ipp_connect_timeout)
            config.ipp_read_timeout = i.get("read_timeout", config.ipp_read_timeout)

        if "mdns" in data:
            m = data["mdns"]
            config.mdns_timeout = m.get("timeout", config.mdns_timeout)
            config.mdns_service_types = m.get("service_types", config.mdns_service_types)

        if "ssdp" in data:
            s = data["ssdp"]
            config.ssdp_port = s.get("port", config.ssdp_port)
            config.ssdp_timeout = s.get("timeout", config.ssdp_timeout)

        if "http" in data:
            h = data["http"]
            config.http_ports = h.get("ports", config.http_ports)
            config.https_ports = h.get("https_ports", config.https_ports)
            config.http_timeout = h.get("timeout", config.http_timeout)
            config.http_max_body_bytes = h.get("max_body_bytes", config.http_max_body_bytes)

        if "onvif" in data:
            o = data["onvif"]
            config.onvif_port = o.get("port", config.onvif_port)
            config.onvif_timeout = o.get("timeout", config.onvif_timeout)

        if "oui" in data:
            o = data["oui"]
            config.oui_api_url = o.get("api_url", config.oui_api_url)
            config.oui_timeout = o.get("timeout", config.oui_timeout)
            config.enable_oui_api = o.get("use_api", config.enable_oui_api)

        if "probes" in data:
            p = data["probes"]
            config.enable_snmp = p.get("snmp", True)
            config.enable_ipp = p.get("ipp", True)
            config.enable_mdns = p.get("mdns", True)
            config.enable_ssdp = p.get("ssdp", True)
            config.enable_http = p.get("http", True)
            config.enable_onvif = p.get("onvif", True)
            config.enable_oui = p.get("oui", True)

        config.deadline_seconds = data.get("deadline_seconds", config.deadline_seconds)
        config.max_concurrent_devices = data.get(
            "max_concurrent_devices", config.max_concurrent_devices
        )
        config.log_level = data.get("log_level", "INFO")

        return config

    def worst_case_seconds(self) -> float:
        """
        Time a device that never answers can take with every enabled probe.

        SNMP tries each community once, or stops at the first answer and
        runs its five identity GETs, whichever is longer. IPP connects
        twice (port check and request) before reading.
        """
        total = 0.0
        if self.enable_snmp:
            total += max(len(self.snmp_communities), 1 + SNMP_IDENTITY_GETS) * self.snmp_get_timeout
        if self.enable_ipp:
            total += 2 * self.ipp_connect_timeout + self.ipp_read_timeout
        if self.enable_mdns:
            total += self.mdns_timeout
        if self.enable_ssdp:
            total += self.ssdp_timeout
        if self.enable_http:
            total += len(self.http_ports) * self.http_timeout
        if self.enable_onvif:
            total += self.onvif_timeout
        if self.enable_oui and self.enable_oui_api:
            total += self.oui_timeout
        return total

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if self.enable_snmp and not self.snmp_communities:
            errors.append("SNMP enabled but no community strings configured")

        if self.enable_http and not self.http_ports:
            errors.append("HTTP probe enabled but no ports configured")

        for name in (
            "snmp_timeout",
            "snmp_get_timeout",
            "ipp_connect_timeout",
            "ipp_read_timeout",
            "mdns_timeout",
            "ssdp_timeout",
            "http_timeout",
            "onvif_timeout",
            "oui_timeout",
            "deadline_seconds",
        ):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.snmp_retries < 0:
            errors.append(f"Invalid SNMP retry count: {self.snmp_retries}")

        if self.max_concurrent_devices < 1:
            errors.append(f"Invalid concurrency: {self.max_concurrent_devices}")

        worst_case = self.worst_case_seconds()
        if 0 < self.deadline_seconds < worst_case:
            logger.warning(
                f"deadline_seconds={self.deadline_seconds} is below the "
                f"{worst_case:.1f}s worst case; later probes may be skipped "
                f"on unresponsive devices"
            )

        return errors


# Example enrichment.yaml:
"""
snmp:
  communities: ["public", "private", "snmp", "admin", "itam_public"]
  timeout: 2
  retries: 1
  get_timeout: 3

ipp:
  connect_timeout: 2
  read_timeout: 5

mdns:
  timeout: 6
  service_types: ["_ipp._tcp", "_printer._tcp"]

http:
  ports: [80, 443, 8080, 8443]
  https_ports: [443, 8443]
  timeout: 3

oui:
  api_url: "https://api.macvendors.com/"
  use_api: true

probes:
  snmp: true
  ipp: true
  mdns: true
  ssdp: true
  http: true
  onvif: true
  oui: true

deadline_seconds: 60
max_concurrent_devices: 16
log_level: "INFO"
"""
