"""A TCP and UDP echo server on localhost with a few slash commands."""

from __future__ import annotations

import enum
import logging
import selectors
import socket
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from duoserve.threadpool import ThreadPool

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
MAX_EVENTS = 64
BUFFER_SIZE = 1024
_POLL_INTERVAL = 0.5


class ServerError(Exception):
    """Raised when the server cannot be started or used."""


@dataclass
class ClientInfo:
    """A connected TCP client."""

    sock: socket.socket
    address: Tuple[str, int]


class _Source(enum.Enum):
    TCP = enum.auto()
    UDP = enum.auto()
    WAKE = enum.auto()


def strip_line_ending(message: str) -> str:
    """Drop one trailing newline, then one trailing carriage return."""
    if message.endswith("\n"):
        message = message[:-1]
    if message.endswith("\r"):
        message = message[:-1]
    return message


def current_time() -> str:
    """Return the local time as YYYY-MM-DD HH:MM:SS."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())


def _decode(data: bytes) -> str:
    text = data.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
    return strip_line_ending(text)


def _encode(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _allow_reuse(sock: socket.socket) -> None:
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    if hasattr(socket, "SO_REUSEPORT"):
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)


class Server:
    """Serve TCP and UDP on the same localhost port.

    Plain messages are echoed back; ``/time``, ``/stats`` and ``/shutdown``
    are commands. Replies are produced on a thread pool.
    """

    def __init__(self, running: Optional[threading.Event] = None) -> None:
        self._running = running if running is not None else threading.Event()
        self.port: Optional[int] = None
        self._tcp: Optional[socket.socket] = None
        self._udp: Optional[socket.socket] = None
        self._wake_reader: Optional[socket.socket] = None
        self._wake_writer: Optional[socket.socket] = None
        self._selector: Optional[selectors.BaseSelector] = None
        self._pool: Optional[ThreadPool] = None
        self._clients: Dict[int, ClientInfo] = {}
        self._clients_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._total_clients = 0
        self._current_clients = 0
        self._closed = True
        self._looping = False

    def start(self, port: int, count_threads: int) -> None:
        """Open the sockets and the worker pool; raise ServerError on failure."""
        self._pool = ThreadPool(count_threads)
        try:
            self._open(port)
        except (OSError, OverflowError) as exc:
            self._release_sockets()
            self._pool.shutdown()
            self._pool = None
            raise ServerError(f"cannot start server on port {port}: {exc}") from exc
        with self._state_lock:
            self._closed = False
        self._running.set()
        logger.info("Server is running port: %d", self.port)

    def _open(self, port: int) -> None:
        self._tcp = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        _allow_reuse(self._tcp)
        _allow_reuse(self._udp)
        self._tcp.bind((HOST, port))
        bound_port = self._tcp.getsockname()[1]
        self._udp.bind((HOST, bound_port))
        self._tcp.setblocking(False)
        self._udp.setblocking(False)
        self._tcp.listen(MAX_EVENTS)
        self._wake_reader, self._wake_writer = socket.socketpair()
        self._wake_reader.setblocking(False)
        self._wake_writer.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._tcp, selectors.EVENT_READ, _Source.TCP)
        self._selector.register(self._udp, selectors.EVENT_READ, _Source.UDP)
        self._selector.register(self._wake_reader, selectors.EVENT_READ, _Source.WAKE)
        self.port = bound_port

    def _release_sockets(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        for sock in (self._tcp, self._udp, self._wake_reader, self._wake_writer):
            if sock is not None:
                sock.close()
        self._tcp = self._udp = self._wake_reader = self._wake_writer = None

    def run(self) -> None:
        """Serve events until stopped or until the running flag is cleared."""
        with self._state_lock:
            if self._closed:
                if self._selector is None:
                    raise ServerError("server is not started")
                return
            self._looping = True
        selector = self._selector
        try:
            while self._running.is_set():
                try:
                    events = selector.select(_POLL_INTERVAL)
                except OSError as exc:
                    logger.error("select error: %s", exc)
                    break
                for key, _ in events:
                    if key.data is _Source.TCP:
                        self._accept()
                    elif key.data is _Source.UDP:
                        self._receive_datagram()
                    elif key.data is _Source.WAKE:
                        return
                    else:
                        self._receive_stream(key.data)
        finally:
            with self._state_lock:
                self._looping = False
            self._close_resources()

    def stop(self) -> None:
        """Stop serving; sockets are closed by the event loop or right here."""
        self._running.clear()
        writer = self._wake_writer
        if writer is not None:
            try:
                writer.send(b"\x01")
            except OSError:
                pass
        with self._state_lock:
            looping = self._looping
        if not looping:
            self._close_resources()

    def stats(self) -> str:
        """Return the total and current number of TCP clients."""
        with self._clients_lock:
            total, current = self._total_clients, self._current_clients
        return f"Total clients: {total} current clients: {current}"

    def process_message(self, message: str) -> str:
        """Return the reply to a message; empty when there is nothing to send."""
        if not message:
            return ""
        if not message.startswith("/"):
            return message
        if message == "/time":
            return current_time()
        if message == "/stats":
            return self.stats()
        if message == "/shutdown":
            logger.info("Shutdown command received")
            logger.info("Server shutting down")
            self.stop()
        else:
            logger.info("Unknown command: %s", message)
        return ""

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _close_resources(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
        with self._clients_lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.sock.close()
        self._release_sockets()
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown()
        logger.info("Server stopped")

    def _accept(self) -> None:
        try:
            conn, address = self._tcp.accept()
        except OSError as exc:
            logger.error("accept: %s", exc)
            return
        conn.setblocking(False)
        info = ClientInfo(conn, address)
        try:
            self._selector.register(conn, selectors.EVENT_READ, info)
        except (OSError, ValueError) as exc:
            logger.error("register client: %s", exc)
            conn.close()
            return
        with self._clients_lock:
            self._clients[conn.fileno()] = info
            self._total_clients += 1
            self._current_clients += 1
            total, current = self._total_clients, self._current_clients
        logger.info(
            "New TCP connection from %s:%d (total: %d, current: %d)",
            address[0],
            address[1],
            total,
            current,
        )

    def _receive_datagram(self) -> None:
        udp = self._udp
        try:
            data, address = udp.recvfrom(BUFFER_SIZE - 1)
        except OSError:
            return
        if not data:
            return
        message = _decode(data)
        pool = self._pool
        if pool is not None:
            pool.enqueue(lambda: self._reply_datagram(udp, address, message))

    def _reply_datagram(self, udp: socket.socket, address, message: str) -> None:
        response = self.process_message(message)
        try:
            udp.sendto(_encode(response), address)
        except OSError:
            pass

    def _receive_stream(self, info: ClientInfo) -> None:
        try:
            data = info.sock.recv(BUFFER_SIZE - 1)
        except BlockingIOError:
            return
        except OSError:
            data = b""
        if not data:
            self._close_client(info)
            return
        message = _decode(data)
        with self._clients_lock:
            if self._clients.get(info.sock.fileno()) is not info:
                return
        pool = self._pool
        if pool is not None:
            pool.enqueue(lambda: self._reply_stream(info.sock, message))

    def _reply_stream(self, sock: socket.socket, message: str) -> None:
        response = self.process_message(message)
        if not response:
            return
        try:
            sock.send(_encode(response))
        except OSError:
            pass

    def _close_client(self, info: ClientInfo) -> None:
        with self._clients_lock:
            fd = info.sock.fileno()
            if self._clients.get(fd) is not info:
                return
            del self._clients[fd]
            self._current_clients -= 1
        logger.info("Remove client")
        try:
            self._selector.unregister(info.sock)
        except (KeyError, ValueError):
            pass
        info.sock.close()