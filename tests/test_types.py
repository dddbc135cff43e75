"""Tests for type definitions."""

import json
from datetime import datetime, timezone

import pytest

from device_enrichment._types import (
    IDENTITY_FIELDS,
    DeviceType,
    EnrichedDevice,
    EnrichmentStatus,
    ProbeResult,
    Protocol,
    now_utc,
)


class TestEnums:
    """Tests for enum definitions."""

    def test_protocol_values(self):
        """Should record protocols under their display names."""
        assert [p.value for p in Protocol] == [
            "SNMP", "IPP", "mDNS", "SSDP", "HTTP", "ONVIF", "OUI",
        ]

    def test_protocol_evidence_keys(self):
        """Should key evidence by lowercase protocol name."""
        assert Protocol.MDNS.evidence_key == "mdns"
        assert Protocol.SNMP.evidence_key == "snmp"

    def test_device_type_values(self):
        """Should have all device classes."""
        assert DeviceType.PRINTER.value == "printer"
        assert DeviceType.ACCESS_POINT.value == "access-point"
        assert DeviceType.NETWORK_DEVICE.value == "network-device"
        assert DeviceType.UNKNOWN.value == "unknown"

    def test_status_values(self):
        """Should have lifecycle statuses."""
        assert EnrichmentStatus.PENDING.value == "pending"
        assert EnrichmentStatus.COMPLETE.value == "complete"


class TestProbeResult:
    """Tests for ProbeResult dataclass."""

    def test_failed_result(self):
        """Should create an empty unsuccessful result."""
        result = ProbeResult.failed(Protocol.IPP)
        assert result.success is False
        assert result.protocol == Protocol.IPP
        assert result.manufacturer is None
        assert result.evidence == {}
        assert result.open_ports == ()

    def test_immutable(self):
        """Should not allow fields to be reassigned."""
        result = ProbeResult(protocol=Protocol.SNMP, success=True, model="X")
        with pytest.raises(Exception):
            result.model = "Y"

    def test_identity_fields_exist(self):
        """Should carry every identity field."""
        result = ProbeResult(protocol=Protocol.SNMP)
        for name in IDENTITY_FIELDS:
            assert getattr(result, name) is None


class TestEnrichedDevice:
    """Tests for EnrichedDevice dataclass."""

    def test_defaults(self):
        """Should start empty and pending."""
        device = EnrichedDevice(ip_address="192.168.1.50")
        assert device.mac_address is None
        assert device.protocols == []
        assert device.evidence == {}
        assert device.confidence == 0.0
        assert device.status == EnrichmentStatus.PENDING
        assert device.enriched_at is None

    def test_independent_mutable_defaults(self):
        """Should not share lists between records."""
        a = EnrichedDevice(ip_address="10.0.0.1")
        b = EnrichedDevice(ip_address="10.0.0.2")
        a.protocols.append("SNMP")
        assert b.protocols == []

    def test_to_dict(self):
        """Should produce a JSON-safe mapping."""
        device = EnrichedDevice(
            ip_address="192.168.1.50",
            mac_address="00:1B:63:84:45:E6",
            manufacturer="HP",
            protocols=["SNMP"],
            evidence={"snmp": {"community": "public"}},
            confidence=0.2,
            status=EnrichmentStatus.COMPLETE,
            enriched_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )

        data = device.to_dict()

        assert data["manufacturer"] == "HP"
        assert data["serial_number"] is None
        assert data["status"] == "complete"
        assert data["enriched_at"] == "2024-01-02T03:04:05+00:00"
        assert data["evidence"]["snmp"]["community"] == "public"
        json.dumps(data)


class TestHelpers:
    """Tests for helper functions."""

    def test_now_utc_is_aware(self):
        """Should return a timezone-aware UTC timestamp."""
        assert now_utc().tzinfo == timezone.utc
