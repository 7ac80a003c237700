import logging
import re
from dataclasses import dataclass, field
from typing import List, Tuple

from .errors import ReplyParseError, UnexpectedReply, MalformedPasvReply

logger = logging.getLogger(__name__)

RESPONSE_TYPES = {
    '1': 'preliminary',
    '2': 'success',
    '3': 'missing_info',
    '4': 'error',
    '5': 'error'
}

_PASV_TUPLE = re.compile(r'(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)')


@dataclass
class ReplyLine:
    code: int
    continuation: bool
    text: str


@dataclass
class Reply:
    """A complete server reply, possibly assembled from several lines."""
    code: int
    message: str
    lines: List[str] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return RESPONSE_TYPES.get(str(self.code)[0], 'unknown')

    @property
    def is_preliminary(self) -> bool:
        return 100 <= self.code < 200

    @property
    def is_success(self) -> bool:
        return 200 <= self.code < 300

    @property
    def is_intermediate(self) -> bool:
        return 300 <= self.code < 400

    @property
    def is_permanent_error(self) -> bool:
        return 500 <= self.code < 600

    @property
    def is_error(self) -> bool:
        return self.code >= 400

    def __str__(self):
        return f"{self.code} {self.message}"


class ReplyParser:

    @staticmethod
    def parse_line(line: str) -> ReplyLine:
        """
        Parse one reply line: three digits, then '-' (more lines follow)
        or a space (last line).
        """
        code = line[:3]
        if len(code) != 3 or not code.isdigit():
            raise ReplyParseError(f"Malformed reply line: {line!r}")
        if len(line) == 3:
            return ReplyLine(int(code), False, "")
        sep = line[3]
        if sep not in ('-', ' '):
            raise ReplyParseError(f"Malformed reply line: {line!r}")
        return ReplyLine(int(code), sep == '-', line[4:])

    @staticmethod
    def build_reply(lines: List[str]) -> Reply:
        """Turn the raw lines of one reply into a Reply."""
        if not lines:
            raise ReplyParseError("Empty reply")
        first = ReplyParser.parse_line(lines[0])
        texts = [first.text]
        for raw in lines[1:]:
            try:
                parsed = ReplyParser.parse_line(raw)
            except ReplyParseError:
                texts.append(raw)
                continue
            texts.append(parsed.text if parsed.code == first.code else raw)
        reply = Reply(first.code, '\n'.join(texts), list(lines))
        logger.debug(f"Parsed reply: code={reply.code}, type={reply.kind}, message={reply.message[:50]}")
        return reply

    @staticmethod
    def parse_pasv_response(reply: Reply) -> Tuple[str, int]:
        """
        Extract the data endpoint from a PASV reply.

        "227 Entering Passive Mode (127,0,0,1,200,10)" -> ("127.0.0.1", 51210)
        """
        if reply.code != 227:
            raise UnexpectedReply(reply, "227")
        match = _PASV_TUPLE.search(reply.message)
        if not match:
            logger.error(f"Failed to parse PASV response: {reply.message}")
            raise MalformedPasvReply(f"Invalid PASV response format: {reply.message!r}")
        numbers = [int(n) for n in match.groups()]
        if any(n > 255 for n in numbers):
            raise MalformedPasvReply(f"PASV field out of range: {reply.message!r}")
        ip = '.'.join(str(n) for n in numbers[:4])
        port = (numbers[4] << 8) + numbers[5]
        logger.debug(f"PASV parsed: {ip}:{port}")
        return ip, port
