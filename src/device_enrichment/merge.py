"""
Merging probe results into an enrichment record, and confidence scoring.

Merge rules:
- Identity fields: first successful write wins.
- Device type: first write wins, except authoritative results (IPP, ONVIF)
  which may refine it. The "unknown" placeholder is never written.
- Evidence is additive per protocol; nothing is ever removed.
"""

from __future__ import annotations

import logging
from typing import Optional

from ._types import IDENTITY_FIELDS, DeviceType, EnrichedDevice, ProbeResult

logger = logging.getLogger(__name__)

# Confidence weights per populated field
CONFIDENCE_WEIGHTS = {
    "manufacturer": 0.20,
    "model": 0.20,
    "serial_number": 0.15,
    "hostname": 0.10,
    "device_type": 0.15,
    "firmware_version": 0.10,
}
MULTI_PROTOCOL_BONUS = 0.10
MULTI_PROTOCOL_THRESHOLD = 2


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def apply_probe_result(device: EnrichedDevice, result: ProbeResult) -> list[str]:
    """
    Merge one probe result into the record in place.

    Returns the names of the fields that were written.
    """
    if not result.success:
        return []

    device.protocols.append(result.protocol.value)
    written = []

    for name in IDENTITY_FIELDS:
        value = _clean(getattr(result, name))
        if value and not getattr(device, name):
            setattr(device, name, value)
            written.append(name)

    device_type = _clean(result.device_type)
    if device_type and device_type != DeviceType.UNKNOWN.value:
        if not device.device_type or (
            result.device_type_authoritative and device.device_type != device_type
        ):
            if device.device_type:
                logger.debug(
                    f"{result.protocol.value} refined device type of {device.ip_address}: "
                    f"{device.device_type} -> {device_type}"
                )
            device.device_type = device_type
            written.append("device_type")

    if result.evidence:
        bucket = device.evidence.setdefault(result.protocol.evidence_key, {})
        for key, value in result.evidence.items():
            bucket.setdefault(key, value)

    for port in result.open_ports:
        if port not in device.open_ports:
            device.open_ports.append(port)

    return written


def calculate_confidence(device: EnrichedDevice) -> float:
    """
    Weighted confidence that the device identity is fully determined.

    Depends only on which typed fields are populated and how many distinct
    protocols answered, never on probe order.
    """
    score = 0.0
    for name, weight in CONFIDENCE_WEIGHTS.items():
        if _clean(getattr(device, name)):
            score += weight

    if len(set(device.protocols)) >= MULTI_PROTOCOL_THRESHOLD:
        score += MULTI_PROTOCOL_BONUS

    return round(min(score, 1.0), 2)
