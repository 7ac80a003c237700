import logging
from datetime import datetime, timezone
from typing import BinaryIO, List, Optional, Tuple

from .connection import ControlChannel, format_command, mask_command
from .data_connection import DataChannel, enter_passive_mode
from .errors import ChannelIOError, FTPClientError, RemoteNotFound, TransferFailed, UnexpectedReply
from .parser import Reply

logger = logging.getLogger(__name__)


class ClientCommandHandler:
    """
    Sends the individual FTP commands over a control channel and keeps a
    history of what was exchanged.
    """

    def __init__(self, connection: ControlChannel, blocksize: int = 8192):
        self.conn = connection
        self.blocksize = blocksize
        self.last_reply: Optional[Reply] = None
        # history as list of dicts: {"time":..., "command":..., "raw":..., "parsed":..., "error":bool}
        self.history = []

    def _record(self, command: str, reply: Reply, **extra):
        self.last_reply = reply
        entry = {
            "time": datetime.now(timezone.utc),
            "command": mask_command(command),
            "raw": list(reply.lines),
            "parsed": reply,
            "error": reply.is_error,
        }
        entry.update(extra)
        self.history.append(entry)

    # Commands answered on the control connection only
    def _execute(self, verb: str, *args) -> Reply:
        reply = self.conn.send_command(verb, *args)
        self._record(format_command(verb, *args), reply)
        return reply

    def _user(self, username: str):
        return self._execute("USER", username)

    def _pass(self, password: str):
        return self._execute("PASS", password)

    def _type(self, mode: str = "I"):
        return self._execute("TYPE", mode)

    def _rest(self, offset: int):
        return self._execute("REST", offset)

    def _dele(self, path: str):
        return self._execute("DELE", path)

    def _rmd(self, path: str):
        return self._execute("RMD", path)

    def _rnfr(self, filename: str):
        return self._execute("RNFR", filename)

    def _rnto(self, filename: str):
        return self._execute("RNTO", filename)

    # Commands that need a data connection
    def _pasv(self) -> Tuple[str, int]:
        host, port = enter_passive_mode(self.conn)
        self.history.append({
            "time": datetime.now(timezone.utc),
            "command": "PASV",
            "data_addr": (host, port),
            "error": False,
        })
        return host, port

    def _open_data(self) -> DataChannel:
        ip, port = self._pasv()
        return DataChannel.open(ip, port, self.conn.timeout)

    def _finish_transfer(self, command: str, opening: Reply, **extra) -> Reply:
        """Read the completion reply that follows a data transfer."""
        reply = self.conn.read_reply()
        self._record(command, reply, opening=opening, **extra)
        if not reply.is_success:
            raise TransferFailed(f"{command} failed: {reply}", reply)
        return reply

    def _drain_aborted(self, command: str, opening: Reply):
        """
        Consume the completion reply of a transfer whose data side failed,
        so the next command gets its own reply. If it cannot be read the
        control channel is unusable.
        """
        if opening.is_success:
            return
        try:
            reply = self.conn.read_reply()
        except FTPClientError as e:
            logger.error(f"No completion reply after failed {command}: {e}")
            self.conn.broken = True
            return
        self._record(command, reply, opening=opening, aborted=True)
        logger.warning(f"{command} aborted, server said {reply}")

    def _mlsd(self, path: str = "") -> Tuple[List[str], Reply]:
        """
        Retrieve a machine listing of path. Returns the raw lines and the
        completion reply.
        """
        command = format_command("MLSD", path)
        with self._open_data() as data_conn:
            self.conn.send_line("MLSD", path)
            opening = self.conn.read_reply()
            if opening.is_permanent_error:
                self._record(command, opening)
                raise RemoteNotFound(f"Cannot list {path or '.'}: {opening}", opening)
            if not (opening.is_preliminary or opening.is_success):
                self._record(command, opening)
                raise TransferFailed(f"MLSD refused: {opening}", opening)
            try:
                listing = data_conn.read_lines(self.conn.encoding)
            except ChannelIOError:
                data_conn.close()
                self._drain_aborted(command, opening)
                raise
        if opening.is_success:
            self._record(command, opening, lines=len(listing))
            return listing, opening
        reply = self._finish_transfer(command, opening, lines=len(listing))
        return listing, reply

    def _stor(self, remote_path: str, fileobj: BinaryIO, binary: bool = True, offset: int = 0) -> Reply:
        """
        Upload the content of fileobj (already positioned at offset) to
        remote_path.
        """
        command = format_command("STOR", remote_path)
        with self._open_data() as data_conn:
            type_reply = self._type("I" if binary else "A")
            if not type_reply.is_success:
                raise UnexpectedReply(type_reply, "2xx")
            if offset > 0:
                rest_reply = self._rest(offset)
                if not rest_reply.is_intermediate:
                    raise UnexpectedReply(rest_reply, "3xx")
            self.conn.send_line("STOR", remote_path)
            opening = self.conn.read_reply()
            if not (opening.is_preliminary or opening.is_success):
                self._record(command, opening)
                raise TransferFailed(f"STOR refused: {opening}", opening)
            try:
                sent = data_conn.send_file(fileobj, self.blocksize, ascii=not binary)
            except (ChannelIOError, OSError):
                data_conn.close()
                self._drain_aborted(command, opening)
                raise
        if opening.is_success:
            self._record(command, opening, bytes=sent)
            return opening
        return self._finish_transfer(command, opening, bytes=sent)

    # Helpers
    def get_history(self):
        """Return a copy of the history list."""
        return list(self.history)

    def clear_history(self):
        self.history.clear()
