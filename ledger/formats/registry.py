"""
Format Registry

Every supported format is a FormatKind mapped to a pair of stateless
functions: a reader producing a ParsedLedger and a writer serializing a
store. Adding a format means adding a kind and one registry entry.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Union

from ledger.formats.base import (
    ImportResult,
    LedgerView,
    MalformedInputError,
    ParsedLedger,
)
from ledger.formats.csv_format import read_csv, write_csv
from ledger.formats.json_format import read_json, write_json
from ledger.formats.yaml_format import read_yaml, write_yaml


class FormatKind(str, Enum):
    CSV = "csv"
    JSON = "json"
    YAML = "yaml"


FORMAT_ALIASES = {
    "yml": FormatKind.YAML,
}

EXTENSIONS = {
    ".csv": FormatKind.CSV,
    ".json": FormatKind.JSON,
    ".yaml": FormatKind.YAML,
    ".yml": FormatKind.YAML,
}


@dataclass(frozen=True)
class FormatHandler:
    read: Callable[[Path], ParsedLedger]
    write: Callable[[Path, LedgerView], None]


FORMATS: dict[FormatKind, FormatHandler] = {
    FormatKind.CSV: FormatHandler(read=read_csv, write=write_csv),
    FormatKind.JSON: FormatHandler(read=read_json, write=write_json),
    FormatKind.YAML: FormatHandler(read=read_yaml, write=write_yaml),
}


def parse_format(token: Union[str, FormatKind]) -> FormatKind:
    """
    Resolve a format name such as "CSV", "json" or "yml".

    Raises:
        MalformedInputError: If the name is not a supported format
    """
    if isinstance(token, FormatKind):
        return token
    name = str(token).strip().lower()
    if name in FORMAT_ALIASES:
        return FORMAT_ALIASES[name]
    try:
        return FormatKind(name)
    except ValueError:
        supported = ", ".join(k.value for k in FormatKind)
        raise MalformedInputError(f"unsupported format '{token}' (supported: {supported})") from None


def detect_format(path: Union[str, Path]) -> FormatKind:
    """
    Infer the format of a path.

    A directory is a CSV folder; files are recognized by extension.

    Raises:
        MalformedInputError: If the extension is not recognized
    """
    target = Path(path)
    if target.is_dir():
        return FormatKind.CSV
    kind = EXTENSIONS.get(target.suffix.lower())
    if kind is None:
        raise MalformedInputError(
            f"cannot infer format of '{target}': use a directory or a .csv/.json/.yaml/.yml file"
        )
    return kind


def parse_ledger(kind: Union[str, FormatKind], source: Union[str, Path]) -> ParsedLedger:
    """Parse a document without touching any store."""
    return FORMATS[parse_format(kind)].read(Path(source))


def read_ledger(
    kind: Union[str, FormatKind],
    source: Union[str, Path],
    target: LedgerView,
) -> ImportResult:
    """
    Import a document into the target collections.

    Nothing is added unless the whole document parses and none of its ids
    collide with the target.
    """
    return parse_ledger(kind, source).commit(target)


def write_ledger(kind: Union[str, FormatKind], destination: Union[str, Path], store: LedgerView) -> None:
    """Serialize the full store to the destination in the given format."""
    FORMATS[parse_format(kind)].write(Path(destination), store)
