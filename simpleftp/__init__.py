"""
simpleftp - a small blocking FTP client (RFC 959 control channel,
passive mode transfers, RFC 3659 MLSD listings).
"""

import logging

from .config import SessionConfig
from .core import FTPSession, DirectoryEntry, Reply
from .core.errors import (
    FTPClientError,
    ConnectError, HostUnreachable, InvalidHost,
    ChannelIOError, ChannelClosed, ChannelTimeout,
    ReplyParseError,
    ProtocolError, UnexpectedReply, MalformedPasvReply,
    OperationError, TransferFailed, RemoteNotFound, RenameIncomplete,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "FTPSession", "SessionConfig", "DirectoryEntry", "Reply",
    "FTPClientError",
    "ConnectError", "HostUnreachable", "InvalidHost",
    "ChannelIOError", "ChannelClosed", "ChannelTimeout",
    "ReplyParseError",
    "ProtocolError", "UnexpectedReply", "MalformedPasvReply",
    "OperationError", "TransferFailed", "RemoteNotFound", "RenameIncomplete",
]
