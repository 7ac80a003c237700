"""
MLSD listings (RFC 3659 section 7).

Each line is a run of ``fact=value;`` pairs, a single space, then the
entry name:

    type=file;size=1024;modify=20240101120000; report.csv
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

HIDDEN_NAMES = ('.', '..')
HIDDEN_TYPES = ('cdir', 'pdir')

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class DirectoryEntry:
    name: str
    type: str = ''
    modify: Optional[datetime] = None
    size: Optional[int] = None
    facts: Dict[str, str] = field(default_factory=dict)

    @property
    def is_dir(self) -> bool:
        return self.type == 'dir'


def parse_modify(value: str) -> Optional[datetime]:
    """
    Parse an MLSD time-val (YYYYMMDDHHMMSS[.sss], always UTC).
    Returns None when the value cannot be read.
    """
    base, _, fraction = value.partition('.')
    try:
        stamp = datetime.strptime(base, '%Y%m%d%H%M%S')
    except ValueError:
        logger.debug(f"Unreadable modify fact: {value!r}")
        return None
    if fraction.isdigit():
        stamp = stamp.replace(microsecond=int(fraction[:6].ljust(6, '0')))
    return stamp.replace(tzinfo=timezone.utc)


def parse_mlsd_line(line: str) -> Optional[DirectoryEntry]:
    """Parse one listing line; returns None for lines that are not entries."""
    line = line.rstrip('\r\n')
    if not line.strip():
        return None
    facts_part, sep, name = line.partition(' ')
    if not sep or not name:
        logger.warning(f"Skipping malformed MLSD line: {line!r}")
        return None

    facts = {}
    for fact in facts_part.split(';'):
        key, eq, value = fact.partition('=')
        if not eq or not key:
            continue
        facts[key.strip().lower()] = value

    size = None
    raw_size = facts.get('size', facts.get('sizd'))
    if raw_size is not None and raw_size.isdigit():
        size = int(raw_size)

    return DirectoryEntry(
        name=name,
        type=facts.get('type', '').lower(),
        modify=parse_modify(facts['modify']) if 'modify' in facts else None,
        size=size,
        facts=facts,
    )


def parse_mlsd(lines: Iterable[str]) -> List[DirectoryEntry]:
    entries = []
    for line in lines:
        entry = parse_mlsd_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def filter_entries(entries: Iterable[DirectoryEntry], type_filter: str = '') -> List[DirectoryEntry]:
    """
    Drop '.', '..' and the cdir/pdir entries. With a type_filter only
    entries of that type are kept.
    """
    type_filter = type_filter.lower()
    result = []
    for entry in entries:
        if entry.name in HIDDEN_NAMES or entry.type in HIDDEN_TYPES:
            continue
        if type_filter and entry.type != type_filter:
            continue
        result.append(entry)
    return result


def sort_by_modify(entries: Iterable[DirectoryEntry]) -> List[DirectoryEntry]:
    """
    Oldest first. sorted() is stable, so entries with equal timestamps
    keep their listing order; entries without a timestamp come first.
    """
    return sorted(entries, key=lambda entry: entry.modify or _EPOCH)
