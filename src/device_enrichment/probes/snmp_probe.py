"""
SNMP v2c enrichment probe.

Tries a fixed list of community strings against sysDescr. The first
community that answers is accepted and no others are tried; five more
OIDs are then queried independently for identity data.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    UdpTransportTarget,
    get_cmd,
)

from .._types import ProbeResult, Protocol
from ..classification import extract_firmware_version, infer_snmp_device_type
from .base import Deadline, EnrichmentProbe

logger = logging.getLogger(__name__)

SYS_DESCR_OID = "1.3.6.1.2.1.1.1.0"

# (oid, ProbeResult field or None, evidence key)
IDENTITY_OIDS = (
    ("1.3.6.1.2.1.1.5.0", "hostname", "sysName"),
    ("1.3.6.1.2.1.1.2.0", None, "sysObjectID"),
    ("1.3.6.1.2.1.47.1.1.1.1.11.1", "serial_number", "serial"),      # entPhysicalSerialNum
    ("1.3.6.1.2.1.47.1.1.1.1.12.1", "manufacturer", "vendor"),       # entPhysicalMfgName
    ("1.3.6.1.2.1.47.1.1.1.1.13.1", "model", "model"),               # entPhysicalModelName
)


class SnmpClient(ABC):
    """Minimal SNMP GET interface used by the probe."""

    @abstractmethod
    async def get(
        self,
        host: str,
        community: str,
        oid: str,
        timeout: float,
        retries: int,
    ) -> Optional[str]:
        """Return the printable value of oid, or None if unavailable."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None


class PysnmpClient(SnmpClient):
    """SNMP v2c GET via pysnmp's asyncio high-level API."""

    def __init__(self, port: int = 161):
        self.port = port
        self._engine: Optional[SnmpEngine] = None

    @property
    def engine(self) -> SnmpEngine:
        if self._engine is None:
            self._engine = SnmpEngine()
        return self._engine

    async def get(
        self,
        host: str,
        community: str,
        oid: str,
        timeout: float,
        retries: int,
    ) -> Optional[str]:
        transport = await UdpTransportTarget.create(
            (host, self.port),
            timeout=timeout,
            retries=retries,
        )

        error_indication, error_status, error_index, var_binds = await asyncio.wait_for(
            get_cmd(
                self.engine,
                CommunityData(community, mpModel=1),
                transport,
                ContextData(),
                ObjectType(ObjectIdentity(oid)),
            ),
            timeout=timeout * (retries + 1) + 1,
        )

        if error_indication:
            logger.debug(f"GET {host} {oid}: {error_indication}")
            return None
        if error_status:
            logger.debug(f"GET {host} {oid}: {error_status.prettyPrint()} at {error_index}")
            return None

        for var_bind in var_binds:
            value = var_bind[1].prettyPrint()
            if value and "No Such" not in value and "No more variables" not in value:
                return value.strip()
        return None

    async def close(self) -> None:
        if self._engine is not None:
            self._engine.close_dispatcher()
            self._engine = None


class SNMPProbe(EnrichmentProbe):
    """
    Identify a device over SNMP v2c.

    Community strings are tried in order. Every GET, retries included, is
    capped at get_timeout, so a rejected or unanswered community costs at
    most that long.
    """

    def __init__(
        self,
        communities: list[str],
        timeout: float = 2.0,
        retries: int = 1,
        port: int = 161,
        get_timeout: float = 3.0,
        client_factory=None,
    ):
        """
        Initialize SNMP probe.

        Args:
            communities: Community strings to try, in order
            timeout: Per-request timeout in seconds
            retries: Retries per request
            port: SNMP agent port
            get_timeout: Overall cap on one GET, retries included
            client_factory: Callable returning an SnmpClient (for tests)
        """
        self.communities = list(communities)
        self.timeout = timeout
        self.retries = retries
        self.get_timeout = get_timeout
        self.port = port
        self._client_factory = client_factory or (lambda: PysnmpClient(port=self.port))

    @property
    def protocol(self) -> Protocol:
        return Protocol.SNMP

    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        client = self._client_factory()
        try:
            return await self._probe(client, ip_address, deadline)
        finally:
            await client.close()

    async def _probe(self, client: SnmpClient, ip_address: str, deadline: Deadline) -> ProbeResult:
        for community in self.communities:
            if deadline.expired:
                logger.debug(f"SNMP deadline reached for {ip_address}")
                break

            sys_descr = await self._safe_get(client, ip_address, community, SYS_DESCR_OID, deadline)
            if not sys_descr:
                logger.debug(f"SNMP community rejected or no answer: {ip_address}")
                continue

            logger.info(f"SNMP success for {ip_address} with community: {community}")
            evidence = {"community": community, "sysDescr": sys_descr}
            fields: dict[str, str] = {}

            for oid, field_name, key in IDENTITY_OIDS:
                value = await self._safe_get(client, ip_address, community, oid, deadline)
                if not value:
                    continue
                evidence[key] = value
                if field_name:
                    fields[field_name] = value

            return ProbeResult(
                protocol=Protocol.SNMP,
                success=True,
                device_type=infer_snmp_device_type(evidence.get("sysObjectID"), sys_descr),
                firmware_version=extract_firmware_version(sys_descr),
                evidence=evidence,
                **fields,
            )

        return ProbeResult.failed(Protocol.SNMP)

    async def _safe_get(
        self,
        client: SnmpClient,
        ip_address: str,
        community: str,
        oid: str,
        deadline: Deadline,
    ) -> Optional[str]:
        """GET one OID; any failure is reported as None."""
        budget = deadline.clamp(self.get_timeout)
        if budget <= 0:
            return None
        try:
            return await asyncio.wait_for(
                client.get(ip_address, community, oid, min(self.timeout, budget), self.retries),
                timeout=budget,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"SNMP GET {oid} on {ip_address} failed: {type(e).__name__}")
        except Exception as e:
            logger.debug(f"SNMP GET {oid} on {ip_address} error: {e}")
        return None
