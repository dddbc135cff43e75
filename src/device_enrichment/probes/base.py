"""
Base classes for enrichment probes.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Optional

from .._types import ProbeResult, Protocol


class Deadline:
    """
    Overall time budget for enriching one device.

    Probes clamp their own timeouts to what is left so that a device that
    never answers cannot stall its caller past the deadline.
    """

    def __init__(self, seconds: float, clock=time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def clamp(self, timeout: float) -> float:
        """Shorten a timeout so it ends no later than the deadline."""
        return min(timeout, self.remaining())


class EnrichmentProbe(ABC):
    """Base class for protocol probes."""

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        """Protocol this probe speaks."""
        pass

    @property
    def name(self) -> str:
        return self.protocol.value

    @abstractmethod
    async def probe(
        self,
        ip_address: str,
        mac_address: Optional[str],
        deadline: Deadline,
    ) -> ProbeResult:
        """
        Probe a single device.

        Connectivity and parse failures are expected and must be reported
        as an unsuccessful ProbeResult, not raised.
        """
        pass
