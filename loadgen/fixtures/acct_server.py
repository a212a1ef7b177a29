from __future__ import annotations

import os
import socketserver
import threading
from dataclasses import dataclass, field
from pathlib import Path

from pyrad.dictionary import Dictionary
from pyrad.packet import AccountingRequest, AcctPacket, PacketError

from radgen.logger import Logger, session_logger

from loadgen.core.transport import load_dictionary


@dataclass
class ReceivedRequest:
    """Raw attributes of one Accounting-Request seen by the fixture server."""

    packet_id: int
    attributes: dict[int, list[bytes]] = field(default_factory=dict)

    def values(self, code: int) -> list[bytes]:
        return self.attributes.get(code, [])


class AccountingFixtureServer:
    """Local UDP accounting server for tests and CI-safe runs.

    Answers every valid Accounting-Request with an Accounting-Response signed
    with ``secret``. ``drop_first`` silently discards that many datagrams
    first (to exercise retransmission); ``respond=False`` never answers.

    Env defaults:
      RADGEN_FIXTURE_HOST=127.0.0.1
    """

    def __init__(
        self,
        *,
        secret: bytes = b"testing123",
        port: int = 0,
        dictionary: Dictionary | None = None,
        dictionary_path: str | Path | None = None,
        drop_first: int = 0,
        respond: bool = True,
        logger: Logger | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self._secret = secret
        self._dictionary = dictionary if dictionary is not None else load_dictionary(dictionary_path)
        self._drop_remaining = drop_first
        self._respond = respond
        self._bind_host = os.environ.get("RADGEN_FIXTURE_HOST", "127.0.0.1")
        self.port = port

        self._lock = threading.Lock()
        self._received: list[ReceivedRequest] = []
        self.datagrams_seen = 0
        self.datagrams_dropped = 0

        self._server: socketserver.UDPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def host(self) -> str:
        return self._bind_host

    @property
    def received(self) -> list[ReceivedRequest]:
        with self._lock:
            return list(self._received)

    def start(self) -> None:
        fixture = self

        class Handler(socketserver.BaseRequestHandler):
            def handle(self) -> None:
                data, sock = self.request
                reply = fixture._handle_datagram(data)
                if reply is not None:
                    sock.sendto(reply, self.client_address)

        self._server = socketserver.ThreadingUDPServer((self._bind_host, self.port), Handler)
        self._server.daemon_threads = True
        self.port = int(self._server.server_address[1])
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        self._logger.info(
            "gen.fixture_server_started",
            event="gen.fixture_server_started",
            host=self._bind_host,
            port=self.port,
            respond=self._respond,
        )

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

        self._logger.info(
            "gen.fixture_server_stopped",
            event="gen.fixture_server_stopped",
            port=self.port,
            datagrams_seen=self.datagrams_seen,
        )

    def _handle_datagram(self, data: bytes) -> bytes | None:
        with self._lock:
            self.datagrams_seen += 1
            if self._drop_remaining > 0:
                self._drop_remaining -= 1
                self.datagrams_dropped += 1
                return None

        try:
            request = AcctPacket(packet=data, dict=self._dictionary, secret=self._secret)
        except PacketError as exc:
            self._logger.warning(
                "gen.fixture_bad_packet",
                event="gen.fixture_bad_packet",
                error=str(exc),
            )
            return None

        if request.code != AccountingRequest:
            return None

        received = ReceivedRequest(
            packet_id=request.id,
            attributes={key: list(values) for key, values in dict.items(request)},
        )
        with self._lock:
            self._received.append(received)

        if not self._respond:
            return None
        return request.CreateReply().ReplyPacket()

    def __enter__(self) -> "AccountingFixtureServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        return None
