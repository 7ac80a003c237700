import socket
import logging
from typing import BinaryIO, List, Optional, Tuple

from .connection import ControlChannel, open_socket
from .errors import ChannelClosed, ChannelTimeout
from .parser import ReplyParser

logger = logging.getLogger(__name__)


def enter_passive_mode(control: ControlChannel) -> Tuple[str, int]:
    """
    Send PASV and return the (host, port) the server listens on.

    Raises UnexpectedReply if the server does not answer 227 and
    MalformedPasvReply if the address tuple cannot be read.
    """
    reply = control.send_command('PASV')
    host, port = ReplyParser.parse_pasv_response(reply)
    if host == '0.0.0.0':
        host = control.peer_host()
        logger.debug(f"PASV advertised 0.0.0.0, using control peer {host}")
    return host, port


class DataChannel:
    """
    Transient PASV data connection. One instance carries exactly one
    transfer and is closed right after it.
    """

    def __init__(self, ip: str, port: int, timeout: float = 90.0):
        self.ip = ip
        self.port = port
        self.timeout = timeout
        self.data_socket: Optional[socket.socket] = None

    @classmethod
    def open(cls, ip: str, port: int, timeout: float = 90.0) -> "DataChannel":
        channel = cls(ip, port, timeout)
        channel.connect()
        return channel

    def connect(self):
        """
        Establish the TCP connection to the advertised endpoint.
        """
        self.data_socket = open_socket(self.ip, self.port, self.timeout)
        logger.debug(f"[DATA] Connected to {self.ip}:{self.port}")

    def close(self):
        if self.data_socket:
            try:
                self.data_socket.close()
            except OSError as e:
                logger.debug(f"[DATA] Error closing data socket: {e}")
            self.data_socket = None
            logger.debug(f"[DATA] Disconnected from {self.ip}:{self.port}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def read_all(self) -> bytes:
        """
        Read until the server closes its end of the connection.
        """
        self._ensure_open()
        buffer = []
        while True:
            try:
                data = self.data_socket.recv(8192)
            except socket.timeout as e:
                raise ChannelTimeout(f"[DATA] Timed out reading from {self.ip}:{self.port}") from e
            except OSError as e:
                raise ChannelClosed(f"[DATA] Connection lost: {e}") from e
            if not data:
                break
            buffer.append(data)
        return b''.join(buffer)

    def read_lines(self, encoding: str = 'utf-8') -> List[str]:
        text = self.read_all().decode(encoding, errors='surrogateescape')
        return [line.rstrip('\r') for line in text.split('\n') if line.strip()]

    def send_file(self, fileobj: BinaryIO, blocksize: int = 8192, ascii: bool = False) -> int:
        """
        Stream an open binary file into the data connection.

        In ASCII mode line endings are converted to CRLF. Returns the
        number of bytes written to the socket.
        """
        self._ensure_open()
        sent = 0
        try:
            if ascii:
                for line in fileobj:
                    if line.endswith(b'\n') and not line.endswith(b'\r\n'):
                        line = line[:-1] + b'\r\n'
                    self.data_socket.sendall(line)
                    sent += len(line)
            else:
                while chunk := fileobj.read(blocksize):
                    self.data_socket.sendall(chunk)
                    sent += len(chunk)
        except socket.timeout as e:
            raise ChannelTimeout(f"[DATA] Timed out writing to {self.ip}:{self.port}") from e
        except OSError as e:
            raise ChannelClosed(f"[DATA] Connection lost: {e}") from e
        logger.debug(f"[DATA] Sent {sent} bytes to {self.ip}:{self.port}")
        return sent

    def _ensure_open(self):
        if self.data_socket is None:
            raise ChannelClosed("[DATA] Data connection is not open.")
