"""
CSV Reader and Writer

Reading:
- the source layout (directory or sectioned file) is picked by csv_sources
- each table may start with a "sep=<char>" directive; otherwise its
  delimiter is guessed from the header line (the most frequent of
  ',', ';', tab and '|'; ',' when none occurs)
- fields are quote-aware ("" inside quotes is a literal quote) and trimmed
- headers are matched case-insensitively; blank rows are skipped
- numbers use the invariant convention ('.' as decimal point)

Writing always produces a directory with the three canonical files,
UTF-8 without BOM, '\\n' line endings, rows in store order.
"""

import csv
import io
import itertools
from pathlib import Path
from typing import Any, Iterable

from ledger.formats.base import (
    LedgerView,
    MalformedInputError,
    ParsedLedger,
    build_entity,
    format_number,
    parse_float,
    parse_int,
)
from ledger.formats.csv_sources import open_csv_source
from ledger.models.entities import (
    Account,
    Category,
    Operation,
    OperationType,
    parse_operation_type,
)


COLUMNS = {
    "accounts": ("id", "name", "balance"),
    "categories": ("id", "type", "name"),
    "operations": ("id", "type", "bank_account_id", "category_id", "amount", "date", "description"),
}
OPTIONAL_COLUMNS = {
    "operations": {"description"},
}

DEFAULT_DELIMITER = ","
DELIMITER_CANDIDATES = (",", ";", "\t", "|")


# =============================================================================
# TABLE PARSING
# =============================================================================

def guess_delimiter(header: str) -> str:
    """Most frequent candidate delimiter in the header line; ties go to the earlier candidate."""
    best, best_count = DEFAULT_DELIMITER, 0
    for candidate in DELIMITER_CANDIDATES:
        count = header.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def parse_table(content: str, section: str = "table") -> list[list[str]]:
    """
    Split the raw text of one table into rows of trimmed fields.

    The first row returned is the header. Leading blank lines and a
    "sep=<char>" directive are consumed here.
    """
    # newline="" hands CRs inside quoted fields to csv.reader untouched
    body = io.StringIO(content, newline="")

    def next_non_blank() -> str:
        line = body.readline()
        while line and not line.strip():
            line = body.readline()
        return line

    header = next_non_blank()
    if not header:
        return []

    delimiter = None
    probe = header.rstrip("\r\n").lstrip()
    if probe.lower().startswith("sep=") and len(probe) >= 5:
        delimiter = probe[4]
        header = next_non_blank()
        if not header:
            return []

    if delimiter is None:
        delimiter = guess_delimiter(header)

    try:
        reader = csv.reader(
            itertools.chain([header], body), delimiter=delimiter, quotechar='"', skipinitialspace=True
        )
        return [[value.strip() for value in row] for row in reader]
    except (csv.Error, TypeError) as e:
        raise MalformedInputError(f"CSV {section}: cannot split rows with delimiter {delimiter!r}: {e}") from e


def _records(section: str, table: list[list[str]]) -> Iterable[tuple[int, dict[str, str]]]:
    """Yield (row number, {column: value}) for every non-blank data row."""
    if not table:
        return

    index: dict[str, int] = {}
    for position, name in enumerate(table[0]):
        index.setdefault(name.strip().lower(), position)

    optional = OPTIONAL_COLUMNS.get(section, set())
    for column in COLUMNS[section]:
        if column not in index and column not in optional:
            raise MalformedInputError(f"CSV {section}: missing column '{column}'")

    for row_no, row in enumerate(table[1:], start=1):
        if all(not value for value in row):
            continue
        record = {
            column: (row[index[column]] if index[column] < len(row) else "")
            for column in COLUMNS[section]
            if column in index
        }
        yield row_no, record


def _operation_type(value: str, where: str) -> OperationType:
    try:
        return parse_operation_type(value)
    except ValueError as e:
        raise MalformedInputError(f"{where}: {e}") from None


def _load_accounts(table: list[list[str]]) -> list[Account]:
    accounts = []
    for row_no, rec in _records("accounts", table):
        where = f"CSV accounts row {row_no}"
        accounts.append(build_entity(Account, {
            "id": parse_int(rec["id"], f"{where}, column 'id'"),
            "name": rec["name"],
            "balance": parse_float(rec["balance"], f"{where}, column 'balance'"),
        }, where))
    return accounts


def _load_categories(table: list[list[str]]) -> list[Category]:
    categories = []
    for row_no, rec in _records("categories", table):
        where = f"CSV categories row {row_no}"
        categories.append(build_entity(Category, {
            "id": parse_int(rec["id"], f"{where}, column 'id'"),
            "type": _operation_type(rec["type"], f"{where}, column 'type'"),
            "name": rec["name"],
        }, where))
    return categories


def _load_operations(table: list[list[str]]) -> list[Operation]:
    operations = []
    for row_no, rec in _records("operations", table):
        where = f"CSV operations row {row_no}"
        operations.append(build_entity(Operation, {
            "id": parse_int(rec["id"], f"{where}, column 'id'"),
            "type": _operation_type(rec["type"], f"{where}, column 'type'"),
            "bank_account_id": parse_int(rec["bank_account_id"], f"{where}, column 'bank_account_id'"),
            "category_id": parse_int(rec["category_id"], f"{where}, column 'category_id'"),
            "amount": parse_float(rec["amount"], f"{where}, column 'amount'"),
            "date": rec["date"],
            "description": rec.get("description"),
        }, where))
    return operations


def read_csv(source: Path) -> ParsedLedger:
    """
    Parse a CSV directory or sectioned file.

    Raises:
        SourceUnavailableError: missing directory/file
        MissingSectionError: a sectioned file lacks one of the three tables
        MalformedInputError: bad header, number or type token
    """
    chunks = open_csv_source(source).read(source)
    return ParsedLedger(
        accounts=_load_accounts(parse_table(chunks.accounts, "accounts")),
        categories=_load_categories(parse_table(chunks.categories, "categories")),
        operations=_load_operations(parse_table(chunks.operations, "operations")),
    )


# =============================================================================
# WRITING
# =============================================================================

def _escape(value: str, delimiter: str) -> str:
    if any(ch in value for ch in (delimiter, '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def _line(cells: Iterable[Any], delimiter: str) -> str:
    return delimiter.join(
        _escape("" if cell is None else format_number(cell), delimiter) for cell in cells
    ) + "\n"


def render_csv_tables(store: LedgerView, delimiter: str = DEFAULT_DELIMITER) -> dict[str, str]:
    """Text of the three CSV files, keyed by table name."""
    accounts = [_line(COLUMNS["accounts"], delimiter)]
    accounts += [_line((a.id, a.name, a.balance), delimiter) for a in store.accounts.all()]

    categories = [_line(COLUMNS["categories"], delimiter)]
    categories += [_line((c.id, c.type.value, c.name), delimiter) for c in store.categories.all()]

    operations = [_line(COLUMNS["operations"], delimiter)]
    operations += [
        _line((o.id, o.type.value, o.bank_account_id, o.category_id, o.amount, o.date, o.description), delimiter)
        for o in store.operations.all()
    ]

    return {
        "accounts": "".join(accounts),
        "categories": "".join(categories),
        "operations": "".join(operations),
    }


def write_csv(destination: Path, store: LedgerView) -> None:
    """(Re)create accounts.csv, categories.csv and operations.csv in the destination directory."""
    target = Path(destination)
    target.mkdir(parents=True, exist_ok=True)
    for name, text in render_csv_tables(store).items():
        with open(target / f"{name}.csv", "w", encoding="utf-8", newline="") as f:
            f.write(text)
