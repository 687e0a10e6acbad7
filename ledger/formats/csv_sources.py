"""
CSV Sources

A CSV import can come from two layouts:
1. A directory holding accounts.csv, categories.csv and operations.csv
2. A single "sectioned" file where marker lines (#%table:accounts,
   #%table:categories, #%table:operations) start each table

A source only splits raw text into the three tables. Parsing rows and
fields is the CSV reader's job.
"""

import io
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from ledger.formats.base import (
    MalformedInputError,
    MissingSectionError,
    SourceUnavailableError,
)


SECTIONS = ("accounts", "categories", "operations")
SECTION_MARKER = "#%table:"

_SECTION_NAME = re.compile(r"[a-z0-9_]*")


@dataclass(frozen=True)
class CsvChunks:
    """Raw text of the three tables; the first non-blank line of each is its header."""
    accounts: str
    categories: str
    operations: str


def _read_text(path: Path) -> str:
    # utf-8-sig drops a leading byte-order mark; newline="" keeps CRs inside quoted fields
    try:
        with open(path, encoding="utf-8-sig", newline="") as f:
            return f.read()
    except OSError as e:
        raise SourceUnavailableError(f"CSV: cannot read {path}: {e}") from e


class CsvSource(ABC):
    """Abstract provider of the three raw CSV tables."""

    @abstractmethod
    def read(self, path: Path) -> CsvChunks:
        """
        Read the raw tables from the given location.

        Raises:
            SourceUnavailableError: If the location or a required file is missing
        """
        pass


class FolderCsvSource(CsvSource):
    """Directory with one file per table."""

    def read(self, path: Path) -> CsvChunks:
        base = Path(path)
        if not base.is_dir():
            raise SourceUnavailableError(f"CSV: directory not found: {base}")

        tables = {}
        for name in SECTIONS:
            file_path = base / f"{name}.csv"
            if not file_path.is_file():
                raise SourceUnavailableError(f"CSV: file '{name}.csv' not found in {base}")
            tables[name] = _read_text(file_path)

        return CsvChunks(**tables)


class SectionedCsvSource(CsvSource):
    """Single file split into tables by #%table:<name> marker lines."""

    def read(self, path: Path) -> CsvChunks:
        file_path = Path(path)
        if not file_path.is_file():
            raise SourceUnavailableError(f"CSV: file not found: {file_path}")

        text = _read_text(file_path)

        buffers: dict[str, list[str]] = {}
        current = None

        # lines keep their endings so CRs inside quoted fields reach the reader
        for line_no, line in enumerate(io.StringIO(text, newline=""), start=1):
            stripped = line.strip()

            if stripped.lower().startswith(SECTION_MARKER):
                tag = _SECTION_NAME.match(stripped[len(SECTION_MARKER):].strip().lower()).group(0)
                if tag not in SECTIONS:
                    raise MalformedInputError(f"CSV: unknown section '{tag}' at line {line_no}")
                if tag in buffers:
                    raise MalformedInputError(f"CSV: duplicate section '{tag}' at line {line_no}")
                current = tag
                buffers[current] = []
                continue

            if current is None:
                # only blank lines may precede the first marker
                if stripped:
                    raise MalformedInputError(
                        f"CSV: data outside of a section at line {line_no}"
                    )
                continue

            buffers[current].append(line)

        missing = [name for name in SECTIONS if name not in buffers]
        if missing:
            raise MissingSectionError(
                f"CSV: sections required: accounts, categories, operations "
                f"(missing: {', '.join(missing)})"
            )

        return CsvChunks(**{name: "".join(lines) for name, lines in buffers.items()})


def open_csv_source(path: Path) -> CsvSource:
    """Pick the source strategy: directories are folders, anything else a sectioned file."""
    return FolderCsvSource() if Path(path).is_dir() else SectionedCsvSource()
