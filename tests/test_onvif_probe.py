"""Tests for the ONVIF WS-Discovery probe."""

import asyncio

import pytest

from device_enrichment.probes.base import Deadline
from device_enrichment.probes.onvif_probe import (
    ONVIFProbe,
    build_probe,
    parse_onvif_response,
)

PROBE_MATCH = """<?xml version="1.0" encoding="UTF-8"?>
<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://www.w3.org/2003/05/soap-envelope">
<SOAP-ENV:Body><d:ProbeMatches><d:ProbeMatch>
<d:Scopes>onvif://www.onvif.org/type/video_encoder onvif://www.onvif.org/name/HIKVISION onvif://www.onvif.org/hardware/DS-2CD2042WD-I onvif://www.onvif.org/location/city/hangzhou</d:Scopes>
<d:XAddrs>http://{ip}/onvif/device_service</d:XAddrs>
</d:ProbeMatch></d:ProbeMatches></SOAP-ENV:Body></SOAP-ENV:Envelope>"""


class _Responder(asyncio.DatagramProtocol):
    def __init__(self, reply: bytes):
        self.reply = reply
        self.received = []

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.received.append(data)
        self.transport.sendto(self.reply, addr)


class TestBuildProbe:
    """Tests for the WS-Discovery Probe message."""

    def test_message_id(self):
        """Should embed the given message id."""
        message = build_probe("1234").decode()
        assert "<a:MessageID>uuid:1234</a:MessageID>" in message
        assert "dp0:NetworkVideoTransmitter" in message

    def test_fresh_message_ids(self):
        """Should generate a new id each time."""
        assert build_probe() != build_probe()


class TestParseResponse:
    """Tests for ProbeMatch parsing."""

    def test_scopes(self):
        """Should read vendor and hardware model from scopes."""
        parsed = parse_onvif_response(PROBE_MATCH.format(ip="192.168.1.64"))
        assert parsed["manufacturer"] == "Hikvision"
        assert parsed["model"] == "DS-2CD2042WD-I"

    def test_mfr_and_model_tokens(self):
        """Should prefer explicit mfr= and model= tokens."""
        parsed = parse_onvif_response("<x>mfr=Axis model=P3245-V</x>")
        assert parsed["manufacturer"] == "Axis"
        assert parsed["model"] == "P3245-V"

    def test_nothing_known(self):
        """Should return empty hints for an anonymous camera."""
        parsed = parse_onvif_response("<d:ProbeMatch></d:ProbeMatch>")
        assert parsed == {"manufacturer": None, "model": None}


class TestOnvifProbe:
    """Tests for the ONVIF probe against a loopback responder."""

    @pytest.mark.asyncio
    async def test_camera_answers(self):
        """Should identify an answering camera authoritatively."""
        loop = asyncio.get_running_loop()
        reply = PROBE_MATCH.format(ip="127.0.0.1").encode()
        transport, responder = await loop.create_datagram_endpoint(
            lambda: _Responder(reply), local_addr=("127.0.0.1", 0)
        )
        port = transport.get_extra_info("sockname")[1]
        try:
            result = await ONVIFProbe(port=port, timeout=2.0).probe("127.0.0.1", None, Deadline(10))
        finally:
            transport.close()

        assert b"NetworkVideoTransmitter" in responder.received[0]
        assert result.success is True
        assert result.device_type == "camera"
        assert result.device_type_authoritative is True
        assert result.manufacturer == "Hikvision"
        assert result.model == "DS-2CD2042WD-I"
        assert result.evidence["raw"].startswith("<?xml")

    @pytest.mark.asyncio
    async def test_no_answer(self):
        """Should fail quietly when nothing answers."""
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol, local_addr=("127.0.0.1", 0)
        )
        port = transport.get_extra_info("sockname")[1]
        try:
            result = await ONVIFProbe(port=port, timeout=0.3).probe("127.0.0.1", None, Deadline(10))
        finally:
            transport.close()

        assert result.success is False
        assert result.device_type is None
