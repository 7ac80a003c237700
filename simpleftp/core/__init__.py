"""
Core FTP client logic.
Includes the control and data channels, the reply and listing parsers,
the command handler and the session built on top of them.
"""

from .connection import ControlChannel
from .data_connection import DataChannel, enter_passive_mode
from .commands import ClientCommandHandler
from .parser import ReplyParser, Reply, ReplyLine
from .listing import DirectoryEntry, parse_mlsd, parse_mlsd_line, filter_entries, sort_by_modify
from .session import FTPSession

__all__ = [
    "ControlChannel",
    "DataChannel",
    "enter_passive_mode",
    "ClientCommandHandler",
    "ReplyParser",
    "Reply",
    "ReplyLine",
    "DirectoryEntry",
    "parse_mlsd",
    "parse_mlsd_line",
    "filter_entries",
    "sort_by_modify",
    "FTPSession"
]
