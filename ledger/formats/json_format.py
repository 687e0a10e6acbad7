"""
JSON Reader and Writer

Document layout:
    {"accounts": [...], "categories": [...], "operations": [...]}

Keys are matched case-insensitively at every level. A missing array is
an empty one. One bad element fails the whole document.
"""

import json
from pathlib import Path
from typing import Any, Optional

from ledger.formats.base import (
    LedgerView,
    MalformedInputError,
    ParsedLedger,
    SourceUnavailableError,
    build_entity,
)
from ledger.models.entities import Account, Category, LedgerEntity, Operation


SECTION_MODELS: dict[str, type[LedgerEntity]] = {
    "accounts": Account,
    "categories": Category,
    "operations": Operation,
}


def _lower_keys(data: dict[str, Any]) -> dict[str, Any]:
    lowered: dict[str, Any] = {}
    for key, value in data.items():
        lowered.setdefault(str(key).lower(), value)
    return lowered


def _load_section(name: str, items: Optional[Any]) -> list[LedgerEntity]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise MalformedInputError(f"JSON: '{name}' must be an array")

    model = SECTION_MODELS[name]
    entities = []
    for position, item in enumerate(items):
        where = f"JSON {name}[{position}]"
        if not isinstance(item, dict):
            raise MalformedInputError(f"{where}: expected an object")
        entities.append(build_entity(model, _lower_keys(item), where))
    return entities


def read_json(source: Path) -> ParsedLedger:
    """
    Parse a JSON ledger document.

    Raises:
        SourceUnavailableError: If the file does not exist or cannot be read
        MalformedInputError: On a syntax error or any invalid element
    """
    path = Path(source)
    if not path.is_file():
        raise SourceUnavailableError(f"JSON: file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise SourceUnavailableError(f"JSON: cannot read {path}: {e}") from e

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"JSON: parse error in {path}: {e}") from e

    if not isinstance(document, dict):
        raise MalformedInputError(f"JSON: root of {path} must be an object")

    sections = _lower_keys(document)
    return ParsedLedger(
        accounts=_load_section("accounts", sections.get("accounts")),
        categories=_load_section("categories", sections.get("categories")),
        operations=_load_section("operations", sections.get("operations")),
    )


def ledger_to_document(store: LedgerView) -> dict[str, list[dict[str, Any]]]:
    """Plain dict form of the ledger with keys in export order."""
    return {
        "accounts": [
            {"id": a.id, "name": a.name, "balance": a.balance}
            for a in store.accounts.all()
        ],
        "categories": [
            {"id": c.id, "type": c.type.value, "name": c.name}
            for c in store.categories.all()
        ],
        "operations": [
            {
                "id": o.id,
                "type": o.type.value,
                "bank_account_id": o.bank_account_id,
                "category_id": o.category_id,
                "amount": o.amount,
                "date": o.date,
                "description": o.description,
            }
            for o in store.operations.all()
        ],
    }


def write_json(destination: Path, store: LedgerView) -> None:
    """Write the whole ledger as one indented UTF-8 JSON document."""
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(ledger_to_document(store), indent=2, ensure_ascii=False)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text + "\n")
