"""
YAML Reader and Writer

Reading runs in two passes:
1. Strict: the document is loaded with snake_case keys and every record
   is validated straight into its entity model. "type" may be a token or
   the numeric code 0 (income) / 1 (expense).
2. Lenient: when the strict pass finds no known section or any record
   fails it, the raw node tree is walked instead. Section and field names
   are matched after normalization (case and '_'/'-' ignored) and a few
   alias spellings are accepted. Errors name the record and the field.

When both passes fail the errors of both are reported together.

Dates are never resolved to datetime objects: both the loader and the
dumper used here drop YAML's implicit timestamp resolver, so "2024-01-15"
stays a plain string in both directions.
"""

from pathlib import Path
from typing import Any, Optional

import yaml

from ledger.formats.base import (
    LedgerView,
    MalformedInputError,
    MissingSectionError,
    ParsedLedger,
    SourceUnavailableError,
    build_entity,
    normalize_key,
    parse_float,
    parse_int,
)
from ledger.models.entities import (
    Account,
    Category,
    LedgerEntity,
    Operation,
    parse_operation_type,
)


SECTIONS = ("accounts", "categories", "operations")

TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"
NULL_TAG = "tag:yaml.org,2002:null"
STR_TAG = "tag:yaml.org,2002:str"

# Characters a plain scalar must not start with
PLAIN_UNSAFE_START = "-?:,[]{}#&*!|>'%@`"


# =============================================================================
# LOADER / DUMPER
# =============================================================================

def _without_timestamps(resolvers: dict) -> dict:
    return {
        first: [(tag, regexp) for tag, regexp in entries if tag != TIMESTAMP_TAG]
        for first, entries in resolvers.items()
    }


class LedgerLoader(yaml.SafeLoader):
    """Safe loader that keeps dates as strings."""
    pass


class LedgerDumper(yaml.SafeDumper):
    """Safe dumper with indented block sequences and ledger string styling."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


LedgerLoader.yaml_implicit_resolvers = _without_timestamps(yaml.SafeLoader.yaml_implicit_resolvers)
LedgerDumper.yaml_implicit_resolvers = _without_timestamps(yaml.SafeDumper.yaml_implicit_resolvers)


def is_plain_safe(value: str) -> bool:
    """
    Whether a string may be written as a plain (unquoted) scalar.

    Strings that would be re-read as another type (numbers, booleans,
    null) are still quoted by the emitter itself.
    """
    if value != value.strip():
        return False
    if any(ch in value for ch in ('"', "\n", "\r", "\t")):
        return False
    if value and value[0] in PLAIN_UNSAFE_START:
        return False
    if ": " in value or " :" in value:
        return False
    return True


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    style = None if is_plain_safe(data) else '"'
    return dumper.represent_scalar(STR_TAG, data, style=style)


LedgerDumper.add_representer(str, _represent_str)


# =============================================================================
# STRICT PASS
# =============================================================================

STRICT_MODELS: dict[str, type[LedgerEntity]] = {
    "accounts": Account,
    "categories": Category,
    "operations": Operation,
}


def _strict_pass(text: str) -> ParsedLedger:
    """
    Raises:
        MissingSectionError: If the root holds none of the three sections
        MalformedInputError: On a syntax error or the first invalid record
    """
    try:
        document = yaml.load(text, Loader=LedgerLoader)
    except yaml.YAMLError as e:
        raise MalformedInputError(f"syntax error: {e}") from e

    if not isinstance(document, dict) or not any(name in document for name in SECTIONS):
        raise MissingSectionError("no accounts/categories/operations section")

    parsed = ParsedLedger()
    for name, model in STRICT_MODELS.items():
        items = document.get(name)
        if items is None:
            continue
        if not isinstance(items, list):
            raise MalformedInputError(f"'{name}' must be a list")
        for position, item in enumerate(items):
            where = f"{name}[{position}]"
            if not isinstance(item, dict):
                raise MalformedInputError(f"{where}: expected a mapping")
            getattr(parsed, name).append(build_entity(model, item, where))
    return parsed


# =============================================================================
# LENIENT PASS
# =============================================================================

# normalized field name -> accepted normalized spellings
FIELD_ALIASES = {
    "id": ("id",),
    "name": ("name",),
    "balance": ("balance",),
    "type": ("type", "kind"),
    "bank_account_id": ("bankaccountid", "accountid", "bankaccount", "account"),
    "category_id": ("categoryid", "category"),
    "amount": ("amount",),
    "date": ("date",),
    "description": ("description", "desc", "note"),
}


class _NodeRecord:
    """Field access over one mapping node, with per-field error messages."""

    def __init__(self, node: yaml.MappingNode, where: str):
        self.where = where
        self._fields: dict[str, yaml.Node] = {}
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.ScalarNode):
                self._fields.setdefault(normalize_key(key_node.value), value_node)

    def _node(self, field: str) -> Optional[yaml.Node]:
        for alias in FIELD_ALIASES[field]:
            if alias in self._fields:
                return self._fields[alias]
        return None

    def text(self, field: str, required: bool = True) -> Optional[str]:
        node = self._node(field)
        if node is None or (isinstance(node, yaml.ScalarNode) and node.tag == NULL_TAG):
            if required:
                raise MalformedInputError(f"{self.where}: missing field '{field}'")
            return None
        if not isinstance(node, yaml.ScalarNode):
            raise MalformedInputError(f"{self.where}: field '{field}' must be a scalar")
        return node.value

    def integer(self, field: str) -> int:
        return parse_int(self.text(field), f"{self.where}, field '{field}'")

    def number(self, field: str) -> float:
        return parse_float(self.text(field), f"{self.where}, field '{field}'")

    def operation_type(self):
        raw = self.text("type").strip()
        try:
            return parse_operation_type(int(raw) if raw.isdigit() else raw)
        except ValueError as e:
            raise MalformedInputError(f"{self.where}, field 'type': {e}") from None


def _account_from_node(record: _NodeRecord) -> Account:
    return build_entity(Account, {
        "id": record.integer("id"),
        "name": record.text("name"),
        "balance": record.number("balance"),
    }, record.where)


def _category_from_node(record: _NodeRecord) -> Category:
    return build_entity(Category, {
        "id": record.integer("id"),
        "type": record.operation_type(),
        "name": record.text("name"),
    }, record.where)


def _operation_from_node(record: _NodeRecord) -> Operation:
    return build_entity(Operation, {
        "id": record.integer("id"),
        "type": record.operation_type(),
        "bank_account_id": record.integer("bank_account_id"),
        "category_id": record.integer("category_id"),
        "amount": record.number("amount"),
        "date": record.text("date"),
        "description": record.text("description", required=False),
    }, record.where)


NODE_BUILDERS = {
    "accounts": _account_from_node,
    "categories": _category_from_node,
    "operations": _operation_from_node,
}


def _lenient_pass(text: str) -> ParsedLedger:
    """
    Raises:
        MissingSectionError: If no section is found under any spelling
        MalformedInputError: On a syntax error or an invalid field
    """
    try:
        root = yaml.compose(text, Loader=LedgerLoader)
    except yaml.YAMLError as e:
        raise MalformedInputError(f"syntax error: {e}") from e

    if not isinstance(root, yaml.MappingNode):
        raise MissingSectionError("document root is not a mapping")

    sections: dict[str, yaml.Node] = {}
    for key_node, value_node in root.value:
        if isinstance(key_node, yaml.ScalarNode):
            name = normalize_key(key_node.value)
            if name in NODE_BUILDERS:
                sections.setdefault(name, value_node)

    if not sections:
        raise MissingSectionError("no accounts/categories/operations section")

    parsed = ParsedLedger()
    for name, builder in NODE_BUILDERS.items():
        node = sections.get(name)
        if node is None or (isinstance(node, yaml.ScalarNode) and node.tag == NULL_TAG):
            continue
        if not isinstance(node, yaml.SequenceNode):
            raise MalformedInputError(f"section '{name}' must be a list")
        for position, item in enumerate(node.value):
            where = f"{name}[{position}]"
            if not isinstance(item, yaml.MappingNode):
                raise MalformedInputError(f"{where}: expected a mapping")
            getattr(parsed, name).append(builder(_NodeRecord(item, where)))
    return parsed


# =============================================================================
# READ / WRITE
# =============================================================================

def read_yaml(source: Path) -> ParsedLedger:
    """
    Parse a YAML ledger document (strict pass, then lenient pass).

    Raises:
        SourceUnavailableError: If the file does not exist or cannot be read
        MissingSectionError: If neither pass finds any section
        MalformedInputError: If both passes fail for any other reason
    """
    path = Path(source)
    if not path.is_file():
        raise SourceUnavailableError(f"YAML: file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise SourceUnavailableError(f"YAML: cannot read {path}: {e}") from e

    try:
        return _strict_pass(text)
    except (MalformedInputError, MissingSectionError) as e:
        strict_error = e

    try:
        return _lenient_pass(text)
    except MissingSectionError as e:
        if isinstance(strict_error, MissingSectionError):
            raise MissingSectionError(
                f"YAML {path}: sections required: accounts, categories, operations ({e})"
            ) from e
        lenient_error: Exception = e
    except MalformedInputError as e:
        lenient_error = e

    raise MalformedInputError(
        f"YAML {path}: strict pass: {strict_error}; lenient pass: {lenient_error}"
    ) from lenient_error


def _section_records(store: LedgerView) -> dict[str, list[dict[str, Any]]]:
    operations = []
    for o in store.operations.all():
        record: dict[str, Any] = {
            "id": o.id,
            "type": o.type.value,
            "bank_account_id": o.bank_account_id,
            "category_id": o.category_id,
            "amount": o.amount,
            "date": o.date,
        }
        if o.description is not None:
            record["description"] = o.description
        operations.append(record)

    return {
        "accounts": [
            {"id": a.id, "name": a.name, "balance": a.balance}
            for a in store.accounts.all()
        ],
        "categories": [
            {"id": c.id, "type": c.type.value, "name": c.name}
            for c in store.categories.all()
        ],
        "operations": operations,
    }


def render_yaml(store: LedgerView) -> str:
    """YAML text of the ledger: three block sections separated by a blank line."""
    chunks = [
        yaml.dump(
            {name: records},
            Dumper=LedgerDumper,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
            width=float("inf"),
        )
        for name, records in _section_records(store).items()
    ]
    return "\n".join(chunks)


def write_yaml(destination: Path, store: LedgerView) -> None:
    """Write the whole ledger as a UTF-8 YAML document."""
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(render_yaml(store))
