"""
Socket helpers shared by the probes.

Every socket opened here is closed before the helper returns, whether
the exchange succeeded, timed out or failed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


async def check_tcp_port(host: str, port: int, timeout: float) -> bool:
    """Return True if a TCP connection to host:port succeeds within timeout."""
    if timeout <= 0:
        return False
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
    except (OSError, asyncio.TimeoutError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def send_tcp_request(
    host: str,
    port: int,
    payload: bytes,
    connect_timeout: float,
    read_timeout: float,
    max_bytes: int = 65536,
) -> Optional[bytes]:
    """
    Send payload over TCP and collect the reply.

    Reading stops at EOF, at max_bytes, or when read_timeout expires;
    whatever arrived by then is returned. None means nothing arrived.
    """
    if connect_timeout <= 0 or read_timeout <= 0:
        return None
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=connect_timeout
        )
    except (OSError, asyncio.TimeoutError):
        return None

    data = bytearray()
    loop = asyncio.get_running_loop()
    ends_at = loop.time() + read_timeout
    try:
        writer.write(payload)
        await writer.drain()
        while len(data) < max_bytes:
            remaining = ends_at - loop.time()
            if remaining <= 0:
                break
            chunk = await asyncio.wait_for(
                reader.read(max_bytes - len(data)), timeout=remaining
            )
            if not chunk:
                break
            data.extend(chunk)
    except (OSError, asyncio.TimeoutError) as e:
        logger.debug(f"TCP read from {host}:{port} ended: {type(e).__name__}")
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    return bytes(data) if data else None


class _FirstMatchProtocol(asyncio.DatagramProtocol):
    """Resolves a future with the first datagram accepted by a predicate."""

    def __init__(self, accept: Callable[[bytes, tuple], bool]):
        self.accept = accept
        self.result: asyncio.Future = asyncio.get_running_loop().create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if self.result.done():
            return
        try:
            accepted = self.accept(data, addr)
        except Exception as e:
            logger.debug(f"Discarding datagram from {addr}: {e}")
            return
        if accepted:
            self.result.set_result((data, addr))

    def error_received(self, exc: Exception) -> None:
        # ICMP port unreachable and friends: nobody is listening
        if not self.result.done():
            self.result.set_result(None)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if not self.result.done():
            self.result.set_result(None)


async def udp_request(
    host: str,
    port: int,
    payload: bytes,
    timeout: float,
    accept: Callable[[bytes, tuple], bool],
) -> Optional[bytes]:
    """
    Send one datagram and wait for the first acceptable reply.

    The socket is left unconnected so replies from a different source port
    (common with SSDP and WS-Discovery) still arrive; accept() decides which
    datagrams count. Returns None on timeout or socket error.
    """
    if timeout <= 0:
        return None

    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: _FirstMatchProtocol(accept),
            local_addr=("0.0.0.0", 0),
        )
    except OSError as e:
        logger.debug(f"Could not open UDP socket for {host}:{port}: {e}")
        return None

    try:
        transport.sendto(payload, (host, port))
        reply = await asyncio.wait_for(protocol.result, timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return None
    finally:
        transport.close()

    if reply is None:
        return None
    data, _ = reply
    return data
