"""
Exception hierarchy for the FTP client.

Channel level code raises these; the session collapses most of them
into boolean results.
"""


class FTPClientError(Exception):
    """Base class for every error raised by simpleftp."""


# ----------------- connect -----------------
class ConnectError(FTPClientError):
    pass


class HostUnreachable(ConnectError):
    pass


class InvalidHost(ConnectError):
    pass


# ----------------- socket I/O -----------------
class ChannelIOError(FTPClientError):
    pass


class ChannelClosed(ChannelIOError):
    pass


class ChannelTimeout(ChannelIOError):
    pass


# ----------------- protocol -----------------
class ReplyParseError(FTPClientError):
    pass


class ProtocolError(FTPClientError):
    pass


class UnexpectedReply(ProtocolError):
    def __init__(self, reply, expected: str = ""):
        self.reply = reply
        self.expected = expected
        detail = f" (expected {expected})" if expected else ""
        super().__init__(f"Unexpected reply {reply}{detail}")


class MalformedPasvReply(ProtocolError):
    pass


# ----------------- operations -----------------
class OperationError(FTPClientError):
    def __init__(self, message: str, reply=None):
        super().__init__(message)
        self.reply = reply


class TransferFailed(OperationError):
    pass


class RemoteNotFound(OperationError):
    pass


class RenameIncomplete(OperationError):
    """RNFR was accepted but RNTO was refused. Nothing is rolled back."""

    def __init__(self, old_name: str, new_name: str, reply=None):
        self.old_name = old_name
        self.new_name = new_name
        super().__init__(f"Rename {old_name} -> {new_name} left incomplete: {reply}", reply)
