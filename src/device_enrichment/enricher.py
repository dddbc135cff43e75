"""
Device enrichment coordinator.

Runs the protocol probes against a device in a fixed order, merges their
results into one EnrichedDevice, falls back to a MAC OUI lookup when no
manufacturer was found, and scores the outcome.

Probe order reflects specificity and cost: SNMP and IPP give the richest
structured data cheaply; OUI is the least specific and runs last.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Iterable, Optional, Union

from ._types import EnrichedDevice, EnrichmentStatus, ProbeResult, now_utc
from .config import EnrichmentConfig
from .merge import apply_probe_result, calculate_confidence
from .probes import (
    Deadline,
    EnrichmentProbe,
    HTTPProbe,
    IPPProbe,
    MDNSProbe,
    ONVIFProbe,
    OUIProbe,
    SNMPProbe,
    SSDPProbe,
)

logger = logging.getLogger(__name__)

Target = Union[str, tuple[str, Optional[str]]]


class DeviceEnricher:
    """
    Multi-protocol device enrichment engine.

    Probes run sequentially within a device. Many devices can be enriched
    concurrently through enrich_many().
    """

    def __init__(
        self,
        config: Optional[EnrichmentConfig] = None,
        probes: Optional[list[EnrichmentProbe]] = None,
        oui_probe: Optional[EnrichmentProbe] = None,
    ):
        """
        Initialize the enricher.

        Args:
            config: Enrichment configuration (defaults if omitted)
            probes: Protocol probes in run order (built from config if omitted)
            oui_probe: Fallback manufacturer probe (built from config if omitted)
        """
        self.config = config or EnrichmentConfig()

        self._probes: list[EnrichmentProbe] = []
        self._oui_probe: Optional[EnrichmentProbe] = None

        if probes is not None:
            self._probes = list(probes)
        else:
            self._init_probes()

        if oui_probe is not None:
            self._oui_probe = oui_probe
        elif self.config.enable_oui:
            self._oui_probe = OUIProbe(
                api_url=self.config.oui_api_url,
                timeout=self.config.oui_timeout,
                use_api=self.config.enable_oui_api,
            )

    def _init_probes(self) -> None:
        """Initialize enabled protocol probes in priority order."""
        if self.config.enable_snmp:
            self._probes.append(SNMPProbe(
                communities=self.config.snmp_communities,
                timeout=self.config.snmp_timeout,
                retries=self.config.snmp_retries,
                port=self.config.snmp_port,
                get_timeout=self.config.snmp_get_timeout,
            ))

        if self.config.enable_ipp:
            self._probes.append(IPPProbe(
                port=self.config.ipp_port,
                connect_timeout=self.config.ipp_connect_timeout,
                read_timeout=self.config.ipp_read_timeout,
            ))

        if self.config.enable_mdns:
            self._probes.append(MDNSProbe(
                service_types=self.config.mdns_service_types,
                timeout=self.config.mdns_timeout,
            ))

        if self.config.enable_ssdp:
            self._probes.append(SSDPProbe(
                port=self.config.ssdp_port,
                timeout=self.config.ssdp_timeout,
            ))

        if self.config.enable_http:
            self._probes.append(HTTPProbe(
                ports=self.config.http_ports,
                https_ports=self.config.https_ports,
                timeout=self.config.http_timeout,
                max_body_bytes=self.config.http_max_body_bytes,
            ))

        if self.config.enable_onvif:
            self._probes.append(ONVIFProbe(
                port=self.config.onvif_port,
                timeout=self.config.onvif_timeout,
            ))

        logger.debug(f"Enrichment probes enabled: {[p.name for p in self._probes]}")

    @property
    def probe_names(self) -> list[str]:
        return [p.name for p in self._probes]

    async def enrich(self, ip_address: str, mac_address: Optional[str] = None) -> EnrichedDevice:
        """
        Enrich a single device.

        Never raises for network failures; an unreachable device yields a
        mostly-empty record with zero confidence.

        Raises:
            ValueError: ip_address is not a valid IP address
        """
        ip_address = str(ipaddress.ip_address(ip_address.strip()))
        mac_address = mac_address.strip() if mac_address and mac_address.strip() else None

        device = EnrichedDevice(ip_address=ip_address, mac_address=mac_address)
        device.status = EnrichmentStatus.ENRICHING
        deadline = Deadline(self.config.deadline_seconds)

        logger.info(f"Enriching device {ip_address}")

        try:
            for probe in self._probes:
                if deadline.expired:
                    logger.info(
                        f"Enrichment deadline reached for {ip_address}, "
                        f"skipping {probe.name} and later probes"
                    )
                    break

                result = await self._run_probe(probe, device, deadline)
                apply_probe_result(device, result)

            # OUI fallback only when nothing else named the manufacturer
            if self._oui_probe and device.mac_address and not device.manufacturer:
                result = await self._run_oui_probe(device, deadline)
                apply_probe_result(device, result)

            device.status = EnrichmentStatus.COMPLETE
        except Exception as e:
            logger.error(f"Enrichment of {ip_address} failed: {e}")
            device.status = EnrichmentStatus.FAILED

        device.confidence = calculate_confidence(device)
        device.enriched_at = now_utc()

        logger.info(
            f"Enrichment complete for {ip_address}: "
            f"protocols={device.protocols} confidence={device.confidence:.2f}"
        )
        return device

    async def _run_probe(
        self,
        probe: EnrichmentProbe,
        device: EnrichedDevice,
        deadline: Deadline,
    ) -> ProbeResult:
        """Run one probe bounded by the deadline; failures become empty results."""
        try:
            return await asyncio.wait_for(
                probe.probe(device.ip_address, device.mac_address, deadline),
                timeout=deadline.remaining(),
            )
        except asyncio.TimeoutError:
            logger.debug(f"{probe.name} probe timed out for {device.ip_address}")
        except Exception as e:
            logger.warning(f"{probe.name} probe failed for {device.ip_address}: {e}")
        return ProbeResult.failed(probe.protocol)

    async def _run_oui_probe(self, device: EnrichedDevice, deadline: Deadline) -> ProbeResult:
        # Not bounded by the deadline: the local table needs no network and
        # the API call clamps itself to what is left.
        probe = self._oui_probe
        try:
            return await probe.probe(device.ip_address, device.mac_address, deadline)
        except Exception as e:
            logger.warning(f"{probe.name} probe failed for {device.ip_address}: {e}")
        return ProbeResult.failed(probe.protocol)

    async def enrich_many(self, targets: Iterable[Target]) -> list[EnrichedDevice]:
        """
        Enrich many devices concurrently.

        Targets are IP strings or (ip, mac) tuples. At most
        max_concurrent_devices are probed at once; results keep input order.

        Raises:
            ValueError: a target IP address is malformed (checked before any probing)
        """
        pairs: list[tuple[str, Optional[str]]] = []
        for target in targets:
            if isinstance(target, str):
                pairs.append((target, None))
            else:
                pairs.append((target[0], target[1]))

        for ip, _ in pairs:
            ipaddress.ip_address(ip.strip())

        semaphore = asyncio.Semaphore(self.config.max_concurrent_devices)

        async def _bounded(ip: str, mac: Optional[str]) -> EnrichedDevice:
            async with semaphore:
                return await self.enrich(ip, mac)

        logger.info(
            f"Enriching {len(pairs)} devices "
            f"(max {self.config.max_concurrent_devices} concurrent)"
        )
        return list(await asyncio.gather(*(_bounded(ip, mac) for ip, mac in pairs)))


async def enrich_device(
    ip_address: str,
    mac_address: Optional[str] = None,
    config: Optional[EnrichmentConfig] = None,
) -> EnrichedDevice:
    """Enrich one device with a default (or given) configuration."""
    return await DeviceEnricher(config).enrich(ip_address, mac_address)
