import socket
import logging
from typing import List, Optional

from .errors import (
    ConnectError, HostUnreachable, InvalidHost, ChannelClosed, ChannelTimeout, ReplyParseError,
)
from .parser import Reply, ReplyParser

logger = logging.getLogger(__name__)

CRLF = '\r\n'
MAX_LINE = 8192


def open_socket(host: str, port: int, timeout: float) -> socket.socket:
    """Open a TCP connection, mapping failures onto ConnectError subclasses."""
    try:
        return socket.create_connection((host, port), timeout=timeout)
    except socket.gaierror as e:
        raise InvalidHost(f"Cannot resolve {host}: {e}") from e
    except (socket.timeout, OSError) as e:
        raise HostUnreachable(f"Failed to connect to {host}:{port} - {e}") from e


def format_command(verb: str, *args) -> str:
    args = [str(a) for a in args if a is not None and str(a) != '']
    line = f"{verb} {' '.join(args)}" if args else verb
    if '\r' in line or '\n' in line:
        raise ValueError(f"Illegal newline in command: {line!r}")
    return line


def mask_command(line: str) -> str:
    """Hide the password of a PASS command."""
    if line[:5].upper() == 'PASS ':
        return 'PASS ****'
    return line


class ControlChannel:
    """The persistent command/reply connection of one FTP session."""

    def __init__(self, host: str, port: int, timeout: float = 90.0, encoding: str = 'utf-8'):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.encoding = encoding
        self.socket: Optional[socket.socket] = None
        self.broken = False
        self._buffer = b''

    @property
    def is_open(self) -> bool:
        return self.socket is not None and not self.broken

    def open(self):
        if self.socket is not None:
            raise RuntimeError("Connection already established.")
        logger.info(f"Connecting to {self.host}:{self.port} (timeout={self.timeout}s)")
        try:
            self.socket = open_socket(self.host, self.port, self.timeout)
        except ConnectError as e:
            logger.error(f"✗ {e}")
            raise
        logger.info(f"✓ Connected to {self.host}:{self.port}")
        return self

    def peer_host(self) -> str:
        try:
            return self.socket.getpeername()[0]
        except (OSError, AttributeError):
            return self.host

    # ----------------- sending -----------------
    def send_line(self, verb: str, *args):
        """Write one command without waiting for its reply."""
        line = format_command(verb, *args)
        self._ensure_usable()
        logger.debug(f"→ SEND: {mask_command(line)}")
        try:
            self.socket.sendall((line + CRLF).encode(self.encoding, errors='surrogateescape'))
        except socket.timeout as e:
            self.broken = True
            raise ChannelTimeout(f"Timed out sending {verb}") from e
        except OSError as e:
            self.broken = True
            raise ChannelClosed(f"Connection lost while sending {verb}: {e}") from e

    def send_command(self, verb: str, *args) -> Reply:
        self.send_line(verb, *args)
        return self.read_reply()

    # ----------------- receiving -----------------
    def read_reply(self) -> Reply:
        """Read lines until the reply is complete (RFC 959 section 4.2)."""
        self._ensure_usable()
        first_line = self._read_line()
        try:
            first = ReplyParser.parse_line(first_line)
        except ReplyParseError:
            self.broken = True
            raise
        lines: List[str] = [first_line]
        if first.continuation:
            while True:
                line = self._read_line()
                lines.append(line)
                try:
                    parsed = ReplyParser.parse_line(line)
                except ReplyParseError:
                    continue
                if parsed.code == first.code and not parsed.continuation:
                    break
        reply = ReplyParser.build_reply(lines)
        logger.debug(f"← RECV: {reply}")
        return reply

    def _read_line(self) -> str:
        while b'\n' not in self._buffer:
            if len(self._buffer) > MAX_LINE:
                self.broken = True
                raise ReplyParseError("Reply line too long")
            try:
                data = self.socket.recv(4096)
            except socket.timeout as e:
                self.broken = True
                raise ChannelTimeout(f"No reply from {self.host}:{self.port} within {self.timeout}s") from e
            except OSError as e:
                self.broken = True
                raise ChannelClosed(f"Connection lost: {e}") from e
            if not data:
                self.broken = True
                raise ChannelClosed("Connection closed by remote")
            self._buffer += data
        raw, self._buffer = self._buffer.split(b'\n', 1)
        return raw.rstrip(b'\r').decode(self.encoding, errors='surrogateescape')

    def _ensure_usable(self):
        if self.socket is None:
            raise ChannelClosed("No connection established.")
        if self.broken:
            raise ChannelClosed("Control connection is unusable after a previous failure.")

    # ----------------- teardown -----------------
    def close(self):
        """Send QUIT if possible, then close the socket. Never raises."""
        if self.socket is None:
            return
        if not self.broken:
            try:
                reply = self.send_command('QUIT')
                logger.debug(f"QUIT answered with {reply.code}")
            except (ChannelClosed, ChannelTimeout, ReplyParseError) as e:
                logger.debug(f"QUIT failed, closing anyway: {e}")
        try:
            logger.info(f"Closing connection to {self.host}:{self.port}")
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.socket.close()
        except OSError as e:
            logger.debug(f"Error closing control socket: {e}")
        logger.info(f"✓ Disconnected from {self.host}:{self.port}")
        self.socket = None
        self.broken = True
        self._buffer = b''
