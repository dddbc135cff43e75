"""
mDNS / DNS-SD enrichment probe.

Service discovery is delegated to the host's own tooling through a
pluggable backend: avahi-browse on Linux, dns-sd on macOS. Each backend
turns tool output into MdnsRecord objects; the probe keeps the records
that point at the target and reads identity from their TXT data.
"""

from __future__ import annotations

import asyncio
import logging
import re
import socket
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from .._types import DeviceType, ProbeResult, Protocol
from ..classification import extract_manufacturer
from .base import Deadline, EnrichmentProbe

logger = logging.getLogger(__name__)

RAW_EVIDENCE_CHARS = 500


@dataclass
class MdnsRecord:
    """One resolved DNS-SD service instance."""
    service_type: str
    instance: str = ""
    hostname: Optional[str] = None
    addresses: list[str] = field(default_factory=list)
    txt: dict[str, str] = field(default_factory=dict)


def parse_txt_tokens(tokens: list[str]) -> dict[str, str]:
    """Turn TXT strings like "ty=HP LaserJet" into a lowercase-keyed dict."""
    out: dict[str, str] = {}
    for token in tokens:
        if "=" not in token:
            continue
        key, value = token.split("=", 1)
        key = key.strip().lower()
        if key and key not in out:
            out[key] = value.strip()
    return out


def _unescape_dns_sd(name: str) -> str:
    # dns-sd escapes spaces and other bytes as \DDD
    return re.sub(r"\\(\d{3})", lambda m: chr(int(m.group(1))), name).replace("\\.", ".")


def parse_avahi_output(output: str) -> list[MdnsRecord]:
    """
    Parse resolved (-r) avahi-browse output.

    Each record starts with an '=' line and is followed by indented
    'key = [value]' lines.
    """
    records: list[MdnsRecord] = []
    current: Optional[MdnsRecord] = None

    for line in output.splitlines():
        if line.startswith("="):
            parts = line.split()
            # = <iface> <proto> <instance...> <type> <domain>
            service_type = parts[-2] if len(parts) >= 5 else ""
            instance = " ".join(parts[3:-2]) if len(parts) > 5 else ""
            current = MdnsRecord(service_type=service_type, instance=instance)
            records.append(current)
            continue

        if current is None:
            continue

        match = re.match(r"\s*(\w+)\s*=\s*\[(.*)\]\s*$", line)
        if not match:
            continue
        key, value = match.group(1).lower(), match.group(2)

        if key == "hostname":
            current.hostname = value.strip()
        elif key == "address":
            current.addresses.append(value.strip())
        elif key == "txt":
            current.txt = parse_txt_tokens(re.findall(r'"([^"]*)"', value))

    return records


def parse_dns_sd_zone(output: str) -> list[MdnsRecord]:
    """
    Parse `dns-sd -Z` zone-file style output.

    SRV lines give the target host, TXT lines the key=value strings.
    Addresses are not part of this output and are resolved separately.
    """
    by_instance: dict[str, MdnsRecord] = {}

    for line in output.splitlines():
        line = line.split(";", 1)[0].rstrip() if " SRV " in line else line.rstrip()
        match = re.match(r"^(\S+)\s+(SRV|TXT)\s+(.*)$", line)
        if not match:
            continue
        name, rtype, rdata = match.groups()
        name = _unescape_dns_sd(name)

        # "<instance>._ipp._tcp"
        type_match = re.search(r"\.(_[^.]+\._(?:tcp|udp))\.?$", name)
        if not type_match:
            continue
        service_type = type_match.group(1)
        instance = name[:type_match.start()]

        record = by_instance.setdefault(
            name, MdnsRecord(service_type=service_type, instance=instance)
        )
        if rtype == "SRV":
            fields = rdata.split()
            if len(fields) >= 4:
                record.hostname = fields[3]
        else:
            record.txt = parse_txt_tokens(re.findall(r'"([^"]*)"', rdata))

    return list(by_instance.values())


def extract_mdns_identity(records: list[MdnsRecord]) -> dict[str, str]:
    """
    Derive identity fields from the target's DNS-SD records.

    Missing TXT keys are simply absent from the result.
    """
    out: dict[str, str] = {}

    for record in records:
        txt = record.txt
        model = None
        product = txt.get("product", "")
        product_match = re.match(r"^\((.+)\)$", product.strip())
        if product_match:
            model = product_match.group(1).strip()
        elif txt.get("ty"):
            model = txt["ty"]

        if model and "model" not in out:
            out["model"] = model
        if txt.get("mfg") and "manufacturer" not in out:
            out["manufacturer"] = txt["mfg"]
        if record.hostname and "hostname" not in out:
            hostname = re.sub(r"\.local\.?$", "", record.hostname.strip().rstrip("."))
            if hostname:
                out["hostname"] = hostname

    if "manufacturer" not in out and out.get("model"):
        manufacturer = extract_manufacturer(out["model"])
        if manufacturer:
            out["manufacturer"] = manufacturer

    service_types = " ".join(r.service_type for r in records)
    if re.search(r"_ipp|_printer", service_types, re.I):
        out["device_type"] = DeviceType.PRINTER.value
    else:
        out["device_type"] = DeviceType.UNKNOWN.value

    return out


async def run_command(cmd: list[str], timeout: float) -> Optional[str]:
    """
    Run a command and return whatever it printed within timeout.

    Browsing tools may never exit on their own, so the process is killed
    at the timeout and the output gathered so far is kept.
    """
    if timeout <= 0:
        return None
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.debug(f"{cmd[0]} not available: {e}")
        return None

    chunks: list[bytes] = []
    loop = asyncio.get_running_loop()
    ends_at = loop.time() + timeout
    try:
        while True:
            remaining = ends_at - loop.time()
            if remaining <= 0:
                break
            chunk = await asyncio.wait_for(proc.stdout.read(4096), timeout=remaining)
            if not chunk:
                break
            chunks.append(chunk)
    except asyncio.TimeoutError:
        pass
    finally:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    return b"".join(chunks).decode("utf-8", errors="ignore")


class MdnsBackend(ABC):
    """Host service-discovery tooling."""

    name: str = "mdns"

    @abstractmethod
    async def browse(self, service_type: str, timeout: float) -> tuple[str, list[MdnsRecord]]:
        """Browse one service type; returns (raw output, records)."""
        pass


class AvahiBrowseBackend(MdnsBackend):
    """Linux: avahi-browse, terminating after the cache dump (-t)."""

    name = "avahi-browse"

    async def browse(self, service_type: str, timeout: float) -> tuple[str, list[MdnsRecord]]:
        output = await run_command(
            ["avahi-browse", "-t", "-r", "-k", service_type], timeout
        )
        if not output:
            return "", []
        return output, parse_avahi_output(output)


class DnsSdBackend(MdnsBackend):
    """
    macOS: dns-sd -Z, with SRV hosts resolved through the system resolver.

    dns-sd never exits on its own, so it is stopped after listen_share of
    the timeout and the rest is left for address resolution.
    """

    name = "dns-sd"
    listen_share = 0.75

    async def browse(self, service_type: str, timeout: float) -> tuple[str, list[MdnsRecord]]:
        budget = Deadline(timeout)
        output = await run_command(
            ["dns-sd", "-Z", service_type, "local."], timeout * self.listen_share
        )
        if not output:
            return "", []
        records = parse_dns_sd_zone(output)

        loop = asyncio.get_running_loop()
        for record in records:
            if not record.hostname:
                continue
            if budget.expired:
                break
            try:
                infos = await asyncio.wait_for(
                    loop.getaddrinfo(record.hostname, None, family=socket.AF_INET),
                    timeout=budget.clamp(1.0),
                )
            except (OSError, asyncio.TimeoutError):
                continue
            record.addresses = sorted({info[4][0] for info in infos})

        return output, records


def default_backend() -> Optional[MdnsBackend]:
    """Pick the service-discovery backend for this host OS."""
    if sys.platform.startswith("linux"):
        return AvahiBrowseBackend()
    if sys.platform == "darwin":
        return DnsSdBackend()
    return None


class MDNSProbe(EnrichmentProbe):
    """Identify a device from its DNS-SD printer advertisements."""

    def __init__(
        self,
        service_types: Optional[list[str]] = None,
        timeout: float = 6.0,
        backend: Optional[MdnsBackend] = None,
    ):
        self.service_types = service_types or ["_ipp._tcp", "_printer._tcp"]
        self.timeout = timeout
        self.backend = backend if backend is not None else default_backend()

    @property
    def protocol(self) -> Protocol:
        return Protocol.MDNS

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        if self.backend is None:
            logger.debug(f"No mDNS backend for platform {sys.platform}")
            return ProbeResult.failed(Protocol.MDNS)

        # One budget shared by every service type
        budget = Deadline(deadline.clamp(self.timeout))
        for service_type in self.service_types:
            timeout = budget.remaining()
            if timeout <= 0:
                break

            raw, records = await self.backend.browse(service_type, timeout)
            matching = [r for r in records if ip_address in r.addresses]
            if not matching:
                continue

            identity = extract_mdns_identity(matching)
            logger.info(f"mDNS success for {ip_address} ({service_type})")
            return ProbeResult(
                protocol=Protocol.MDNS,
                success=True,
                hostname=identity.get("hostname"),
                manufacturer=identity.get("manufacturer"),
                model=identity.get("model"),
                device_type=identity.get("device_type"),
                evidence={
                    "backend": self.backend.name,
                    "service_type": service_type,
                    "txt": matching[0].txt,
                    "device_type": identity.get("device_type"),
                    "raw": raw[:RAW_EVIDENCE_CHARS],
                },
            )

        return ProbeResult.failed(Protocol.MDNS)
