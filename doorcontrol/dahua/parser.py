import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .logger import ColorLogger
from .models import AccessRecord

RECORD_LINE = re.compile(r"^records\[(\d+)\]\.([^=]+)=(.*)$")
FOUND_LINE = re.compile(r"^found=(\d+)\s*$")
INTEGER = re.compile(r"-?[0-9]+")

# Fields the device reports as numbers
NUMERIC_FIELDS = frozenset({
    "AttendanceState",
    "CardType",
    "CreateTime",
    "Door",
    "ErrorCode",
    "Mask",
    "Method",
    "ReaderID",
    "RecNo",
    "RemainingTimes",
    "ReservedInt",
    "Status",
    "UserType",
})


@dataclass(frozen=True)
class FieldEvent:
    index: int
    name: str
    value: str


class AccessRecordParser:
    """
    Decoder for the ``recordFinder.cgi`` text dump::

        records[0].CardNo=123
        records[0].Status=1
        records[1].CardNo=456
        found=2

    Lines are decoded into ``FieldEvent`` items which are folded into
    ``AccessRecord`` objects. A record is closed as soon as a line with a
    different index shows up, so output order is order of first appearance.
    """

    def __init__(self, numeric_fields=NUMERIC_FIELDS):
        self.numeric_fields = numeric_fields
        self.found: Optional[int] = None
        self.logger = ColorLogger(name="DAHUA_Parser", show_time=True)

    def decode(self, text) -> Iterator[FieldEvent]:
        for line in text.split("\n"):
            line = line.rstrip("\r")
            if not line.strip():
                continue

            match = RECORD_LINE.match(line)
            if match:
                yield FieldEvent(int(match.group(1)), match.group(2), match.group(3))
                continue

            found = FOUND_LINE.match(line)
            if found:
                self.found = int(found.group(1))
                continue

            self.logger.debug(f"Skipping unrecognized line: {line}")

    def coerce(self, name, value):
        if name not in self.numeric_fields:
            return value
        if not INTEGER.fullmatch(value):
            self.logger.debug(f"Keeping non-numeric {name}={value!r} as text")
            return value
        return int(value)

    def parse(self, text) -> List[AccessRecord]:
        self.found = None
        records = []
        current = None

        for event in self.decode(text):
            if current is None or event.index != current.index:
                if current is not None:
                    records.append(current)
                current = AccessRecord(index=event.index)
            current.fields[event.name] = self.coerce(event.name, event.value)

        if current is not None:
            records.append(current)

        if self.found is not None and self.found != len(records):
            self.logger.debug(f"Device reported found={self.found}, decoded {len(records)} record(s)")
        return records


def parse_access_records(text):
    return AccessRecordParser().parse(text)
