"""
FTPSession: the public face of the client.

A session owns one control connection. It is created connected but not
logged in; every operation except login() is refused (returns False, or
an empty list for scan_directory) until login() succeeded. Refused calls
send nothing to the server.
"""

import functools
import logging
import posixpath
from typing import List, Optional

from ..config import DEFAULT_PORT, DEFAULT_TIMEOUT, DEFAULT_ENCODING, BLOCK_SIZE, SessionConfig
from .commands import ClientCommandHandler
from .connection import ControlChannel
from .errors import ConnectError, FTPClientError, InvalidHost, OperationError, RenameIncomplete
from .listing import DirectoryEntry, filter_entries, parse_mlsd, sort_by_modify

logger = logging.getLogger(__name__)


def requires_login(refused=False):
    """Return `refused` without side effects unless the session is authenticated."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            if not self._authenticated:
                logger.debug(f"{method.__name__} refused: not logged in")
                return refused() if callable(refused) else refused
            return method(self, *args, **kwargs)
        return wrapper
    return decorator


class FTPSession:

    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout: float = DEFAULT_TIMEOUT,
                 *, max_depth: Optional[int] = None, encoding: str = DEFAULT_ENCODING):
        if not host:
            raise InvalidHost("Empty host!")
        self.host = host
        self.port = port
        self.timeout = timeout
        self.max_depth = max_depth
        self._authenticated = False
        self._closed = False
        self.last_error: Optional[Exception] = None

        self.conn = ControlChannel(host, port, timeout, encoding)
        self.commands = ClientCommandHandler(self.conn, BLOCK_SIZE)
        self.conn.open()
        try:
            self._read_greeting()
        except FTPClientError:
            self.conn.close()
            self._closed = True
            raise

    @classmethod
    def from_config(cls, host: str, config: SessionConfig = None) -> "FTPSession":
        config = config or SessionConfig.from_env()
        return cls(host, config.port, config.timeout, max_depth=config.max_depth, encoding=config.encoding)

    def _read_greeting(self):
        greeting = self.conn.read_reply()
        while greeting.is_preliminary:
            logger.info(f"Server delayed: {greeting}")
            greeting = self.conn.read_reply()
        self.commands.last_reply = greeting
        if not greeting.is_success:
            raise ConnectError(f"Server refused the connection: {greeting}")
        logger.info(f"Banner: {greeting.code} - {greeting.message}")

    # ----------------- state -----------------
    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_reply(self):
        return self.commands.last_reply

    def get_history(self):
        return self.commands.get_history()

    def clear_history(self):
        self.commands.clear_history()

    def _fail(self, operation: str, error: Exception) -> bool:
        self.last_error = error
        logger.warning(f"{operation} failed: {error}")
        return False

    # ----------------- authentication -----------------
    def login(self, user: str, password: str) -> bool:
        self.last_error = None
        try:
            reply = self.commands._user(user)
            if reply.is_intermediate:
                reply = self.commands._pass(password)
            if not reply.is_success:
                logger.warning(f"Login as {user} rejected: {reply}")
                return False
        except FTPClientError as e:
            return self._fail("login", e)
        self._authenticated = True
        logger.info(f"User {user} authenticated successfully")
        return True

    # ----------------- listing -----------------
    @requires_login(refused=list)
    def scan_directory(self, path: str, sort_by_modify_time: bool = False, type_filter: str = "") -> List[DirectoryEntry]:
        """
        List path with MLSD. '.', '..' and cdir/pdir entries are never
        returned; type_filter keeps only entries of that type.

        Raises RemoteNotFound when the server refuses the listing
        permanently and TransferFailed when the transfer does not
        complete. An empty directory gives an empty list.
        """
        lines, _ = self.commands._mlsd(path)
        entries = filter_entries(parse_mlsd(lines), type_filter)
        if sort_by_modify_time:
            entries = sort_by_modify(entries)
        logger.debug(f"Listed {len(entries)} entries in {path or '.'}")
        return entries

    # ----------------- mutation -----------------
    @requires_login()
    def remove_file(self, path: str) -> bool:
        self.last_error = None
        try:
            reply = self.commands._dele(path)
        except FTPClientError as e:
            return self._fail(f"DELE {path}", e)
        return reply.is_success

    @requires_login()
    def remove_directory_recursive(self, path: str, max_depth: Optional[int] = None) -> bool:
        """
        Delete path and everything below it, depth first. Children are
        handled in listing order and each directory is removed once its
        children are gone. Returns whether the final RMD of path succeeded.
        """
        self.last_error = None
        if max_depth is None:
            max_depth = self.max_depth
        try:
            stack = [(path, iter(self._children(path)), 0)]
            while stack:
                directory, children, depth = stack[-1]
                entry = next(children, None)
                if entry is None:
                    stack.pop()
                    removed = self._rmd(directory)
                    if not stack:
                        return removed
                    continue
                full_name = posixpath.join(directory, entry.name)
                if not entry.is_dir:
                    self.remove_file(full_name)
                elif max_depth is not None and depth >= max_depth:
                    logger.warning(f"Not descending into {full_name}: depth limit {max_depth} reached")
                else:
                    stack.append((full_name, iter(self._children(full_name)), depth + 1))
        except FTPClientError as e:
            return self._fail(f"recursive delete of {path}", e)
        return False

    def _children(self, path: str) -> List[DirectoryEntry]:
        try:
            return self.scan_directory(path)
        except OperationError as e:
            logger.warning(f"Cannot list {path}, removing it as empty: {e}")
            return []

    def _rmd(self, path: str) -> bool:
        try:
            return self.commands._rmd(path).is_success
        except FTPClientError as e:
            return self._fail(f"RMD {path}", e)

    @requires_login()
    def rename(self, old_name: str, new_name: str) -> bool:
        """
        RNFR then RNTO. If RNTO is refused after RNFR was accepted, the
        result is False and last_error is a RenameIncomplete.
        """
        self.last_error = None
        try:
            reply = self.commands._rnfr(old_name)
            if not reply.is_intermediate:
                logger.warning(f"RNFR {old_name} rejected: {reply}")
                return False
            reply = self.commands._rnto(new_name)
        except FTPClientError as e:
            return self._fail(f"rename {old_name}", e)
        if not reply.is_success:
            return self._fail("rename", RenameIncomplete(old_name, new_name, reply))
        return True

    @requires_login()
    def upload(self, remote_path: str, local_file: str, binary_mode: bool = True, start_offset: int = 0) -> bool:
        """
        Store local_file as remote_path. With start_offset > 0 the server
        is told to resume at that offset (REST) and only the rest of the
        local file is sent.
        """
        self.last_error = None
        try:
            fileobj = open(local_file, 'rb')
        except OSError as e:
            return self._fail(f"upload of {local_file}", e)
        with fileobj:
            try:
                if start_offset > 0:
                    fileobj.seek(start_offset)
                self.commands._stor(remote_path, fileobj, binary_mode, start_offset)
            except (FTPClientError, OSError) as e:
                return self._fail(f"upload to {remote_path}", e)
        logger.info(f"Uploaded {local_file} to {remote_path}")
        return True

    # ----------------- teardown -----------------
    def close(self):
        """Close the control connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._authenticated = False
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        if getattr(self, 'conn', None) is not None and not getattr(self, '_closed', True):
            self.close()
