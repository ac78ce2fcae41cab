"""
Parser for the map dump (map.sql) that each game world publishes once a day.

The dump is a sequence of MySQL statements, one settlement per line:

    INSERT INTO `x_world` VALUES (22028,173,146,5,31912,'Natars 173|146',1,'Natars',0,'',498,NULL,FALSE,NULL,NULL,NULL);

Only the value list is interpreted. It is split with a small quote-aware scanner instead of
a full SQL parser, so that slightly broken lines still yield as much data as possible.
"""
import dataclasses
import logging
import re
from typing import Iterator, List, Optional, Tuple

from travianmap import game_info
from travianmap.parsing.errors import DumpFormatError

logger = logging.getLogger(__name__)

QUOTE_CHARS = ("'", '"')
NULL = "NULL"
MIN_FIELD_COUNT = 11
COMMENT_PREFIXES = ("--", "/*", "#")

VALUES_RE = re.compile(r"\bvalues\b", re.IGNORECASE)
ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
ESCAPED_CHARS = {"n": "\n", "r": "\r", "t": "\t", "0": "\0"}
TRUE_VALUES = {"TRUE", "1"}
FALSE_VALUES = {"FALSE", "0"}


@dataclasses.dataclass(frozen=True)
class Settlement:
    """A single row of the x_world table."""

    worldid: Optional[int]
    x: int
    y: int
    tid: Optional[int]
    vid: Optional[int]
    village: str
    uid: Optional[int]
    player: Optional[str]
    aid: Optional[int]
    alliance: Optional[str]
    population: int

    # Trailing columns of newer dumps. Stored, never analyzed.
    region: Optional[str] = None
    capital: Optional[bool] = None
    is_city: Optional[bool] = None
    has_harbor: Optional[bool] = None
    victory_points: Optional[int] = None

    @property
    def is_owned(self) -> bool:
        return self.player is not None


def iter_candidate_lines(dump_text: str) -> Iterator[Tuple[int, str]]:
    """Yield (line number, stripped line) for every line that is neither blank nor a comment."""
    for line_number, line in enumerate(dump_text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_PREFIXES):
            continue
        yield line_number, stripped


def is_settlement_insert(line: str) -> bool:
    lowered = line.lower()
    return "insert into" in lowered and game_info.DUMP_TABLE_NAME in lowered


def parse_record_line(line: str) -> Optional[Settlement]:
    """
    Parse one line of the dump.

    :param line: A single line of the dump
    :return: The settlement, or None if the line is not an insert into the settlement table
    :raises DumpFormatError: if the line is a settlement insert that cannot be read
    """
    if not is_settlement_insert(line):
        return None
    return parse_values(extract_value_list(line))


def extract_value_list(line: str) -> str:
    match = VALUES_RE.search(line)
    if match is None:
        raise DumpFormatError(f"No VALUES clause found in line {_excerpt(line)}")
    rest = line[match.end():]
    start = rest.find("(")
    end = rest.rfind(")")
    if start < 0 or end <= start:
        raise DumpFormatError(f"No parenthesized value list found in line {_excerpt(line)}")
    return rest[start + 1:end]


def split_fields(values: str) -> List[str]:
    """
    Split a comma separated value list. Commas inside a quoted span do not separate fields.

    A span is opened by the first quote character outside of any span and only closed by the
    same character, so that names containing the other quote character stay intact. Inside a
    span, a backslash escapes the following character.
    """
    fields = []
    current = []
    quote_char = None
    escaped = False
    for ch in values:
        if quote_char is not None:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote_char:
                quote_char = None
        elif ch in QUOTE_CHARS:
            quote_char = ch
            current.append(ch)
        elif ch == ",":
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    fields.append("".join(current).strip())
    return fields


def parse_values(values: str) -> Settlement:
    fields = split_fields(values)
    if len(fields) < MIN_FIELD_COUNT:
        raise DumpFormatError(
            f"Expected at least {MIN_FIELD_COUNT} values, found {len(fields)}: {_excerpt(values)}"
        )
    return Settlement(
        worldid=_optional_int(fields[0]),
        x=_int_or_default(fields[1]),
        y=_int_or_default(fields[2]),
        tid=_optional_int(fields[3]),
        vid=_optional_int(fields[4]),
        village=unquote(fields[5]),
        uid=_optional_int(fields[6]),
        player=_optional_text(fields[7]),
        aid=_optional_int(fields[8]),
        alliance=_optional_text(fields[9]),
        population=_int_or_default(fields[10]),
        region=_optional_text(_field_at(fields, 11)),
        capital=_optional_bool(_field_at(fields, 12)),
        is_city=_optional_bool(_field_at(fields, 13)),
        has_harbor=_optional_bool(_field_at(fields, 14)),
        victory_points=_optional_int(_field_at(fields, 15)),
    )


def unquote(field: str) -> str:
    """Remove one pair of enclosing quotes and resolve the escapes inside them."""
    if len(field) >= 2 and field[0] in QUOTE_CHARS and field[-1] == field[0]:
        quote = field[0]
        inner = field[1:-1].replace(quote * 2, quote)
        return ESCAPE_RE.sub(lambda m: ESCAPED_CHARS.get(m.group(1), m.group(1)), inner)
    return field


def _field_at(fields: List[str], index: int) -> Optional[str]:
    if index < len(fields):
        return fields[index]
    return None


def _int_or_default(field: str, default: int = 0) -> int:
    try:
        return int(field)
    except ValueError:
        return default


def _optional_int(field: Optional[str]) -> Optional[int]:
    if field is None:
        return None
    try:
        return int(field)
    except ValueError:
        return None


def _optional_text(field: Optional[str]) -> Optional[str]:
    if field is None or field == "" or field.upper() == NULL:
        return None
    text = unquote(field)
    if not text.strip():
        return None
    return text


def _optional_bool(field: Optional[str]) -> Optional[bool]:
    if field is None:
        return None
    normalized = unquote(field).upper()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return None


def _excerpt(text: str, max_length: int = 120) -> str:
    if len(text) <= max_length:
        return repr(text)
    return repr(text[:max_length] + "...")
