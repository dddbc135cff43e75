"""Tests for probe result merging and confidence scoring."""

import itertools

from device_enrichment._types import EnrichedDevice, ProbeResult, Protocol
from device_enrichment.merge import apply_probe_result, calculate_confidence


def _device() -> EnrichedDevice:
    return EnrichedDevice(ip_address="192.168.1.50")


class TestApplyProbeResult:
    """Tests for merging one result into a record."""

    def test_unsuccessful_result_is_noop(self):
        """Should leave the record untouched for failed probes."""
        device = _device()
        written = apply_probe_result(device, ProbeResult.failed(Protocol.SNMP))

        assert written == []
        assert device.protocols == []
        assert device.evidence == {}

    def test_first_writer_wins(self):
        """Should keep the first successful value of an identity field."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.SNMP, success=True, manufacturer="HP", model="M404n",
        ))
        written = apply_probe_result(device, ProbeResult(
            protocol=Protocol.IPP, success=True, manufacturer="Hewlett-Packard",
            serial_number="CN123",
        ))

        assert device.manufacturer == "HP"
        assert device.model == "M404n"
        assert device.serial_number == "CN123"
        assert written == ["serial_number"]
        assert device.protocols == ["SNMP", "IPP"]

    def test_blank_values_not_written(self):
        """Should treat blank strings as absent."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.MDNS, success=True, hostname="   ",
        ))
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.SNMP, success=True, hostname=" printer-1 ",
        ))

        assert device.hostname == "printer-1"

    def test_device_type_first_write_wins(self):
        """Should not overwrite type from a non-authoritative probe."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.SNMP, success=True, device_type="network-device",
        ))
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.SSDP, success=True, device_type="nas",
        ))

        assert device.device_type == "network-device"

    def test_authoritative_type_refines(self):
        """Should let IPP refine a generic SNMP type to printer."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.SNMP, success=True, device_type="network-device",
        ))
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.IPP, success=True, device_type="printer",
            device_type_authoritative=True,
        ))

        assert device.device_type == "printer"

    def test_unknown_type_never_written(self):
        """Should not write the unknown placeholder."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.MDNS, success=True, device_type="unknown",
            evidence={"device_type": "unknown"},
        ))
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.HTTP, success=True, device_type="camera",
        ))

        assert device.device_type == "camera"
        assert device.evidence["mdns"]["device_type"] == "unknown"

    def test_evidence_is_additive(self):
        """Should merge evidence under the protocol key."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.HTTP, success=True, evidence={"port80": {"status": 200}},
        ))
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.HTTP, success=True, evidence={"port8080": {"status": 401}},
        ))

        assert set(device.evidence["http"]) == {"port80", "port8080"}

    def test_open_ports_deduplicated(self):
        """Should append open ports once."""
        device = _device()
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.IPP, success=True, open_ports=(631,),
        ))
        apply_probe_result(device, ProbeResult(
            protocol=Protocol.HTTP, success=True, open_ports=(631, 80),
        ))

        assert device.open_ports == [631, 80]


class TestCalculateConfidence:
    """Tests for confidence scoring."""

    def test_empty_record(self):
        """Should score zero with nothing populated."""
        assert calculate_confidence(_device()) == 0.0

    def test_manufacturer_only(self):
        """Should score manufacturer weight alone."""
        device = _device()
        device.manufacturer = "HP"
        device.protocols = ["OUI"]

        assert calculate_confidence(device) == 0.2

    def test_multi_protocol_bonus(self):
        """Should add bonus for two or more distinct protocols."""
        device = _device()
        device.manufacturer = "HP"
        device.protocols = ["SNMP", "IPP"]

        assert calculate_confidence(device) == 0.3

    def test_repeated_protocol_no_bonus(self):
        """Should count distinct protocols only."""
        device = _device()
        device.protocols = ["HTTP", "HTTP"]

        assert calculate_confidence(device) == 0.0

    def test_capped_at_one(self):
        """Should never exceed 1.0."""
        device = EnrichedDevice(
            ip_address="192.168.1.50",
            hostname="printer-1",
            manufacturer="HP",
            model="M404n",
            serial_number="CN123",
            firmware_version="2409048",
            device_type="printer",
            protocols=["SNMP", "IPP", "mDNS"],
        )

        assert calculate_confidence(device) == 1.0

    def test_order_independent(self):
        """Should yield the same score whatever order results arrive in."""
        results = [
            ProbeResult(protocol=Protocol.SNMP, success=True, manufacturer="HP",
                        hostname="printer-1", device_type="printer"),
            ProbeResult(protocol=Protocol.IPP, success=True, model="HP LaserJet M404n",
                        serial_number="CN123", device_type="printer",
                        device_type_authoritative=True),
            ProbeResult(protocol=Protocol.HTTP, success=True, device_type="network-device"),
        ]

        scores = set()
        for order in itertools.permutations(results):
            device = _device()
            for result in order:
                apply_probe_result(device, result)
            scores.add(calculate_confidence(device))

        assert scores == {0.9}
