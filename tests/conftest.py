import logging
import socket

import pytest

from simpleftp import FTPSession

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

DATA_HOST = "127.0.0.1"
DATA_PORT = 200 * 256 + 10


class FakeSocket:
    """In-memory stand-in for a connected TCP socket."""

    def __init__(self, server, kind):
        self.server = server
        self.kind = kind
        self.inbox = bytearray()
        self.pending = bytearray()
        self.sent = bytearray()
        self.closed = False

    def settimeout(self, timeout):
        pass

    def getpeername(self):
        return (DATA_HOST, 21)

    def recv(self, size):
        if self.closed:
            raise OSError("socket closed")
        if self.kind == "data" and self.server.data_failure is not None:
            raise self.server.data_failure
        if self.kind == "control" and self.server.hang:
            raise socket.timeout("timed out")
        chunk = bytes(self.inbox[:size])
        del self.inbox[:size]
        return chunk

    def sendall(self, data):
        if self.closed:
            raise OSError("socket closed")
        if self.kind == "data" and self.server.data_failure is not None:
            raise self.server.data_failure
        self.sent += data
        if self.kind != "control":
            return
        self.pending += data
        while b"\r\n" in self.pending:
            line, _, rest = bytes(self.pending).partition(b"\r\n")
            self.pending = bytearray(rest)
            self.server.handle(line.decode("utf-8", errors="surrogateescape"))

    def shutdown(self, how):
        pass

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.server.events.append(f"close-{self.kind}")
        if self.kind == "data" and self.server.stor_target is not None:
            self.server.uploads[self.server.stor_target] = bytes(self.sent)
            self.server.stor_target = None


class FakeFTPServer:
    """
    Scripted FTP server. Replies are produced synchronously when a command
    line is written to the control socket.

    `overrides` maps a verb to a list of canned replies consumed in order;
    each canned reply is a list of raw lines.
    """

    def __init__(self):
        self.greeting = ["220 FakeFTP ready"]
        self.users = {"alice": "secret"}
        self.listings = {}
        self.files = set()
        self.overrides = {}
        self.commands = []
        self.events = []
        self.uploads = {}
        self.control = None
        self.active_data = None
        self.pending_data = None
        self.stor_target = None
        self.current_user = None
        self.hang = False
        self.refuse = False
        self.unresolvable = False
        self.data_failure = None

    # ----------------- helpers used by tests -----------------
    def add_dir(self, path, entries=(), with_self=True):
        lines = []
        if with_self:
            lines.append(f"type=cdir;modify=20240101000000; {path}")
            lines.append("type=pdir;modify=20240101000000; ..")
        for name, kind, modify in entries:
            facts = f"type={kind};"
            if modify:
                facts += f"modify={modify};"
            lines.append(f"{facts} {name}")
            full = path.rstrip("/") + "/" + name
            if kind == "file":
                self.files.add(full)
        self.listings[path] = lines

    def override(self, verb, *replies):
        self.overrides.setdefault(verb, []).extend(
            [reply] if isinstance(reply, str) else list(reply) for reply in replies
        )

    # ----------------- socket factory -----------------
    def create_connection(self, address, timeout=None, source_address=None):
        host, port = address
        if self.unresolvable:
            raise socket.gaierror(-2, "Name or service not known")
        if self.refuse:
            raise ConnectionRefusedError(111, "Connection refused")
        if self.control is None:
            self.control = FakeSocket(self, "control")
            self._send(*self.greeting)
            self.events.append("connect-control")
            return self.control
        if self.pending_data is None or (host, port) != (DATA_HOST, DATA_PORT):
            raise ConnectionRefusedError(111, "Connection refused")
        self.active_data, self.pending_data = self.pending_data, None
        self.events.append("connect-data")
        return self.active_data

    # ----------------- protocol -----------------
    def _send(self, *lines):
        for line in lines:
            self.control.inbox += (line + "\r\n").encode("utf-8")

    def handle(self, line):
        self.commands.append(line)
        self.events.append(line)
        verb, _, arg = line.partition(" ")
        verb = verb.upper()
        if self.overrides.get(verb):
            self._send(*self.overrides[verb].pop(0))
            return
        handler = getattr(self, f"_handle_{verb.lower()}", None)
        if handler is None:
            self._send("502 Command not implemented")
        else:
            handler(arg)

    def _handle_user(self, arg):
        self.current_user = arg
        self._send("331 Password required")

    def _handle_pass(self, arg):
        if self.users.get(self.current_user) == arg:
            self._send("230 Login successful")
        else:
            self._send("530 Login incorrect")

    def _handle_pasv(self, arg):
        self.pending_data = FakeSocket(self, "data")
        self._send("227 Entering Passive Mode (127,0,0,1,200,10)")

    def _handle_type(self, arg):
        self._send(f"200 Type set to {arg}")

    def _handle_rest(self, arg):
        self._send(f"350 Restarting at {arg}")

    def _handle_mlsd(self, arg):
        path = arg or "/"
        if self.active_data is None:
            self._send("425 Use PASV first")
            return
        if path not in self.listings:
            self._send("550 No such directory")
            return
        payload = "".join(line + "\r\n" for line in self.listings[path])
        self.active_data.inbox += payload.encode("utf-8", errors="surrogateescape")
        self.active_data = None
        self._send("150 Here comes the directory listing", "226 Directory send OK")

    def _handle_stor(self, arg):
        if self.active_data is None:
            self._send("425 Use PASV first")
            return
        self.stor_target = arg
        self.active_data = None
        self._send("150 Ok to send data", "226 Transfer complete")

    def _handle_dele(self, arg):
        if arg in self.files:
            self.files.discard(arg)
            self._send("250 Delete operation successful")
        else:
            self._send("550 Delete operation failed")

    def _handle_rmd(self, arg):
        if arg in self.listings:
            del self.listings[arg]
            self._send("250 Remove directory operation successful")
        else:
            self._send("550 Remove directory operation failed")

    def _handle_rnfr(self, arg):
        if arg in self.files:
            self._send("350 Ready for RNTO")
        else:
            self._send("550 RNFR command failed")

    def _handle_rnto(self, arg):
        self._send("250 Rename successful")

    def _handle_quit(self, arg):
        self._send("221 Goodbye")


@pytest.fixture
def ftp_server(monkeypatch):
    server = FakeFTPServer()
    monkeypatch.setattr(socket, "create_connection", server.create_connection)
    return server


@pytest.fixture
def session(ftp_server):
    s = FTPSession("ftp.example.com", timeout=5)
    yield s
    s.close()


@pytest.fixture
def logged_in(session, ftp_server):
    assert session.login("alice", "secret") is True
    del ftp_server.commands[:]
    return session
