"""Accounting-Request transport.

Encodes an AttributeSet into a RADIUS Accounting-Request with pyrad and runs
the UDP exchange: send, wait ``retry_interval`` seconds for a verified
Accounting-Response, resend, up to ``max_retries`` sends. The overall
deadline is enforced by the caller, which cancels ``exchange()``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from ipaddress import IPv4Address
from pathlib import Path
from typing import Any, Protocol

from pyrad.dictionary import Dictionary
from pyrad.packet import AccountingRequest, AccountingResponse, AcctPacket, PacketError

from radgen.exceptions import ExchangeFailure, ExchangeTimeoutError, InvalidReplyError
from radgen.logger import Logger, session_logger

from loadgen.core.attributes import AttributeSet

DEFAULT_DICTIONARY_PATH = Path(__file__).resolve().parent.parent / "dictionaries" / "dictionary.routecall"


@dataclass(frozen=True)
class ExchangeResult:
    reply_code: int
    attempts: int
    duration_ms: int


class Transport(Protocol):
    async def exchange(
        self,
        attributes: AttributeSet,
        *,
        secret: bytes,
        server: str,
        port: int,
        retry_interval: float,
        max_retries: int,
    ) -> ExchangeResult: ...


def load_dictionary(path: str | Path | None = None) -> Dictionary:
    """Load a RADIUS dictionary file (the bundled one by default)."""
    dictionary_path = Path(path) if path is not None else DEFAULT_DICTIONARY_PATH
    if not dictionary_path.is_file():
        raise FileNotFoundError(f"RADIUS dictionary not found: {dictionary_path}")
    return Dictionary(str(dictionary_path))


def _wire_value(value: Any) -> Any:
    """Convert assembler values to what pyrad's dictionary encoders accept."""
    if isinstance(value, datetime):
        return int(value.timestamp())
    if isinstance(value, IPv4Address):
        return str(value)
    return value


class _ReplyProtocol(asyncio.DatagramProtocol):
    """Queues every datagram (or socket error) received on the exchange socket."""

    def __init__(self) -> None:
        self.replies: asyncio.Queue[bytes | Exception] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self.replies.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        self.replies.put_nowait(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self.replies.put_nowait(exc)


class RadiusTransport:
    """pyrad-backed transport; one UDP socket per exchange."""

    def __init__(
        self,
        dictionary: Dictionary | None = None,
        *,
        logger: Logger | None = None,
    ) -> None:
        self._dictionary = dictionary if dictionary is not None else load_dictionary()
        self._logger = logger or session_logger

    @property
    def dictionary(self) -> Dictionary:
        return self._dictionary

    def build_request(self, attributes: AttributeSet, secret: bytes) -> AcctPacket:
        """Encode ``attributes`` into an Accounting-Request packet."""
        packet = AcctPacket(code=AccountingRequest, secret=secret, dict=self._dictionary)
        for attribute in attributes:
            value = _wire_value(attribute.value)
            if isinstance(attribute.key, int):
                # Raw attribute id: appended as-is, repeats are kept.
                packet.setdefault(attribute.key, []).append(value)
            else:
                packet.AddAttribute(attribute.key, value)
        return packet

    async def exchange(
        self,
        attributes: AttributeSet,
        *,
        secret: bytes,
        server: str,
        port: int,
        retry_interval: float,
        max_retries: int,
    ) -> ExchangeResult:
        request = self.build_request(attributes, secret)
        raw_request = request.RequestPacket()

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                _ReplyProtocol,
                remote_addr=(server, port),
            )
        except OSError as exc:
            raise ExchangeFailure(
                "SOCKET_ERROR",
                f"cannot open UDP endpoint to {server}:{port}: {exc}",
                {"server": server, "port": port},
            ) from exc

        try:
            reply, attempts = await self._send_and_wait(
                transport,
                protocol,
                request,
                raw_request,
                server=server,
                port=port,
                retry_interval=retry_interval,
                max_retries=max_retries,
            )
        finally:
            transport.close()

        return ExchangeResult(
            reply_code=reply.code,
            attempts=attempts,
            duration_ms=int((loop.time() - started) * 1000),
        )

    async def _send_and_wait(
        self,
        transport: asyncio.DatagramTransport,
        protocol: _ReplyProtocol,
        request: AcctPacket,
        raw_request: bytes,
        *,
        server: str,
        port: int,
        retry_interval: float,
        max_retries: int,
    ) -> tuple[AcctPacket, int]:
        loop = asyncio.get_running_loop()
        # Non-positive interval: one send, then wait until the caller's deadline.
        sends_allowed = max(1, max_retries) if retry_interval > 0 else 1
        max_invalid_replies = max(1, max_retries)
        invalid_replies = 0

        for attempt in range(1, sends_allowed + 1):
            transport.sendto(raw_request)
            attempt_ends = loop.time() + retry_interval if retry_interval > 0 else None

            while True:
                timeout = None if attempt_ends is None else attempt_ends - loop.time()
                if timeout is not None and timeout <= 0:
                    break
                try:
                    item = await asyncio.wait_for(protocol.replies.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    break

                if isinstance(item, Exception):
                    raise ExchangeFailure(
                        "SOCKET_ERROR",
                        f"socket error talking to {server}:{port}: {item}",
                        {"server": server, "port": port, "attempt": attempt},
                    ) from item

                reply = _verified_reply(request, item)
                if reply is not None:
                    return reply, attempt

                invalid_replies += 1
                self._logger.debug(
                    "gen.invalid_reply",
                    event="gen.invalid_reply",
                    server=server,
                    port=port,
                    packet_id=request.id,
                    invalid_replies=invalid_replies,
                )
                if invalid_replies >= max_invalid_replies:
                    raise InvalidReplyError(
                        "TOO_MANY_INVALID_REPLIES",
                        f"{invalid_replies} replies from {server}:{port} failed verification",
                        {"server": server, "port": port, "invalid_replies": invalid_replies},
                    )

            if attempt < sends_allowed:
                self._logger.debug(
                    "gen.retransmit",
                    event="gen.retransmit",
                    server=server,
                    port=port,
                    packet_id=request.id,
                    attempt=attempt + 1,
                )

        raise ExchangeTimeoutError(
            "NO_REPLY",
            f"no reply from {server}:{port} after {sends_allowed} sends",
            {"server": server, "port": port, "sends": sends_allowed},
        )


def _verified_reply(request: AcctPacket, raw_reply: bytes) -> AcctPacket | None:
    """Decode ``raw_reply``; None unless it is an authentic Accounting-Response to ``request``."""
    try:
        reply = request.CreateReply(packet=raw_reply)
    except PacketError:
        return None
    if reply.code != AccountingResponse:
        return None
    if not request.VerifyReply(reply, raw_reply):
        return None
    return reply
