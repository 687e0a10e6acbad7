"""
Tests for the CSV reader and writer (directory and sectioned layouts).
"""

import pytest

from ledger.formats import (
    MalformedInputError,
    MissingSectionError,
    SourceUnavailableError,
)
from ledger.formats.csv_format import (
    guess_delimiter,
    parse_table,
    read_csv,
    render_csv_tables,
    write_csv,
)
from ledger.models.entities import OperationType
from ledger.services.storage import DuplicateError, LedgerStore


ACCOUNTS = "id,name,balance\n1,Main,100.5\n2,Savings,0\n"
CATEGORIES = "id,type,name\n1,income,Salary\n2,expense,Food\n"
OPERATIONS = (
    "id,type,bank_account_id,category_id,amount,date,description\n"
    "1,income,1,1,50,2024-01-01,Pay\n"
    "2,expense,1,2,20.25,2024-01-02,\n"
)


def write_folder(folder, accounts=ACCOUNTS, categories=CATEGORIES, operations=OPERATIONS):
    folder.mkdir(parents=True, exist_ok=True)
    (folder / "accounts.csv").write_text(accounts, encoding="utf-8")
    (folder / "categories.csv").write_text(categories, encoding="utf-8")
    (folder / "operations.csv").write_text(operations, encoding="utf-8")
    return folder


class TestTableParsing:
    """Tests for delimiter detection and quote-aware splitting."""

    def test_guess_delimiter(self):
        """Test the most frequent candidate wins, ',' by default."""
        assert guess_delimiter("id;name;balance") == ";"
        assert guess_delimiter("id\tname\tbalance") == "\t"
        assert guess_delimiter("id|name|balance") == "|"
        assert guess_delimiter("single") == ","

    def test_guess_delimiter_tie_prefers_earlier_candidate(self):
        """Test that ties go to ',' before ';'."""
        assert guess_delimiter("a,b;c") == ","

    def test_sep_directive_overrides_guess(self):
        """Test that sep= wins over the header's most frequent character."""
        rows = parse_table("sep=|\nid|name,with,commas\n1|x,y,z\n")
        assert rows == [["id", "name,with,commas"], ["1", "x,y,z"]]

    def test_quoted_fields(self):
        """Test doubled quotes and delimiters inside quotes."""
        rows = parse_table('a,b\n"say ""hi""","x, y"\n')
        assert rows[1] == ['say "hi"', "x, y"]

    def test_unquoted_fields_are_trimmed(self):
        """Test whitespace around unquoted fields is dropped."""
        rows = parse_table("a , b\n  1 ,  two  \n")
        assert rows == [["a", "b"], ["1", "two"]]

    def test_leading_blank_lines(self):
        """Test that blank lines before the header are skipped."""
        assert parse_table("\n\n  \nid,name\n1,x\n")[0] == ["id", "name"]

    def test_carriage_return_inside_quotes_is_kept(self):
        """Test that CRLF inside a quoted field survives while CRLF row endings do not."""
        rows = parse_table('id,name\r\n1,"a\r\nb"\r\n')
        assert rows == [["id", "name"], ["1", "a\r\nb"]]

    def test_empty_table(self):
        """Test an all-blank table parses to nothing."""
        assert parse_table("\n \n") == []


class TestFolderImport:
    """Tests for the three-file directory layout."""

    def test_reads_all_tables(self, tmp_path):
        """Test a regular directory import."""
        parsed = read_csv(write_folder(tmp_path / "in"))

        assert [a.name for a in parsed.accounts] == ["Main", "Savings"]
        assert parsed.accounts[0].balance == 100.5
        assert parsed.categories[1].type == OperationType.EXPENSE
        assert parsed.operations[0].description == "Pay"
        assert parsed.operations[1].description is None
        assert parsed.operations[1].amount == 20.25

    def test_semicolon_file_parses_like_comma_file(self, tmp_path):
        """Test that ';' is detected without a sep= directive."""
        comma = read_csv(write_folder(tmp_path / "comma"))
        semicolon = read_csv(write_folder(
            tmp_path / "semicolon",
            accounts=ACCOUNTS.replace(",", ";"),
            categories=CATEGORIES.replace(",", ";"),
            operations=OPERATIONS.replace(",", ";"),
        ))

        assert semicolon.accounts == comma.accounts
        assert semicolon.categories == comma.categories
        assert semicolon.operations == comma.operations

    def test_headers_are_case_insensitive_and_reorderable(self, tmp_path):
        """Test header mapping by name rather than position."""
        parsed = read_csv(write_folder(
            tmp_path / "in",
            accounts="Balance,NAME,Id\n7.5,Main,1\n",
        ))
        assert parsed.accounts[0].id == 1
        assert parsed.accounts[0].balance == 7.5

    def test_description_column_is_optional(self, tmp_path):
        """Test operations without a description column."""
        parsed = read_csv(write_folder(
            tmp_path / "in",
            operations="id,type,bank_account_id,category_id,amount,date\n1,expense,1,2,3,2024-01-01\n",
        ))
        assert parsed.operations[0].description is None

    def test_blank_rows_are_skipped(self, tmp_path):
        """Test rows made only of empty fields."""
        parsed = read_csv(write_folder(
            tmp_path / "in",
            accounts="id,name,balance\n1,Main,1\n,,\n\n2,Other,2\n",
        ))
        assert [a.id for a in parsed.accounts] == [1, 2]

    def test_byte_order_mark_is_ignored(self, tmp_path):
        """Test a UTF-8 BOM in front of the header."""
        folder = write_folder(tmp_path / "in")
        (folder / "accounts.csv").write_text("\ufeff" + ACCOUNTS, encoding="utf-8")
        assert read_csv(folder).accounts[0].id == 1

    def test_missing_column(self, tmp_path):
        """Test the error names the column and the table."""
        folder = write_folder(tmp_path / "in", accounts="id,name\n1,Main\n")
        with pytest.raises(MalformedInputError, match="CSV accounts: missing column 'balance'"):
            read_csv(folder)

    def test_bad_number(self, tmp_path):
        """Test the error names the table, row and column."""
        with pytest.raises(MalformedInputError, match="accounts row 1, column 'balance'"):
            read_csv(write_folder(tmp_path / "bad", accounts="id,name,balance\n1,Main,abc\n"))

    def test_unknown_type(self, tmp_path):
        """Test an unknown operation type token."""
        folder = write_folder(tmp_path / "in", categories="id,type,name\n1,transfer,X\n")
        with pytest.raises(MalformedInputError, match="unknown operation type: transfer"):
            read_csv(folder)

    def test_missing_directory(self, tmp_path):
        """Test a source that does not exist."""
        with pytest.raises(SourceUnavailableError):
            read_csv(tmp_path / "nowhere")

    def test_missing_file_in_directory(self, tmp_path):
        """Test a directory lacking one of the three files."""
        folder = write_folder(tmp_path / "in")
        (folder / "operations.csv").unlink()
        with pytest.raises(SourceUnavailableError, match="operations.csv"):
            read_csv(folder)


class TestSectionedImport:
    """Tests for the single-file layout with #%table markers."""

    def test_reads_sections_with_own_delimiters(self, tmp_path):
        """Test per-section sep= and delimiter guessing."""
        source = tmp_path / "ledger.csv"
        source.write_text(
            "\n"
            "#%table:accounts\n"
            "sep=;\n"
            "id;name;balance\n"
            "1;Main, primary;10\n"
            "#%TABLE:Categories\n"
            "id|type|name\n"
            "1|expense|Food\n"
            "#%table:operations\n"
            + OPERATIONS,
            encoding="utf-8",
        )

        parsed = read_csv(source)

        assert parsed.accounts[0].name == "Main, primary"
        assert parsed.categories[0].name == "Food"
        assert len(parsed.operations) == 2

    def test_data_before_first_marker_fails(self, tmp_path):
        """Test that only blank lines may precede the first section."""
        source = tmp_path / "ledger.csv"
        source.write_text("oops\n#%table:accounts\n" + ACCOUNTS, encoding="utf-8")
        with pytest.raises(MalformedInputError, match="outside of a section"):
            read_csv(source)

    def test_unknown_section_fails(self, tmp_path):
        """Test a marker naming an unknown table."""
        source = tmp_path / "ledger.csv"
        source.write_text("#%table:budgets\nid\n", encoding="utf-8")
        with pytest.raises(MalformedInputError, match="unknown section 'budgets'"):
            read_csv(source)

    def test_missing_section(self, tmp_path):
        """Test that all three sections are required."""
        source = tmp_path / "ledger.csv"
        source.write_text(
            "#%table:accounts\n" + ACCOUNTS + "#%table:categories\n" + CATEGORIES,
            encoding="utf-8",
        )
        with pytest.raises(MissingSectionError, match="operations"):
            read_csv(source)

    def test_duplicate_section_fails(self, tmp_path):
        """Test that a table may only be declared once."""
        source = tmp_path / "ledger.csv"
        source.write_text(
            "#%table:accounts\n" + ACCOUNTS
            + "#%table:categories\n" + CATEGORIES
            + "#%table:Accounts\n" + ACCOUNTS
            + "#%table:operations\n" + OPERATIONS,
            encoding="utf-8",
        )
        with pytest.raises(MalformedInputError, match="duplicate section 'accounts'"):
            read_csv(source)

    def test_quoted_line_breaks_are_kept(self, tmp_path):
        """Test a CRLF inside a quoted field of a sectioned file."""
        source = tmp_path / "ledger.csv"
        source.write_bytes(
            b"#%table:accounts\r\nid,name,balance\r\n1,\"Main\r\nline two\",5\r\n"
            + b"#%table:categories\r\n" + CATEGORIES.encode()
            + b"#%table:operations\r\n" + OPERATIONS.encode()
        )

        parsed = read_csv(source)

        assert parsed.accounts[0].name == "Main\r\nline two"
        assert parsed.accounts[0].balance == 5.0

    def test_missing_file(self, tmp_path):
        """Test a sectioned file that does not exist."""
        with pytest.raises(SourceUnavailableError):
            read_csv(tmp_path / "absent.csv")


class TestCsvStaging:
    """Tests that CSV imports commit all or nothing."""

    def test_bad_operations_leave_target_untouched(self, tmp_path):
        """Test that a failure in the last table adds nothing."""
        folder = write_folder(
            tmp_path / "in",
            operations="id,type,bank_account_id,category_id,amount,date\n1,expense,1,2,NaN?,2024-01-01\n",
        )
        target = LedgerStore()
        with pytest.raises(MalformedInputError):
            read_csv(folder).commit(target)
        assert target.counts() == {"accounts": 0, "categories": 0, "operations": 0}

    def test_duplicate_ids_are_rejected_before_commit(self, tmp_path):
        """Test that a repeated id adds nothing."""
        folder = write_folder(tmp_path / "in", accounts="id,name,balance\n1,A,0\n1,B,0\n")
        target = LedgerStore()
        with pytest.raises(DuplicateError):
            read_csv(folder).commit(target)
        assert len(target.accounts) == 0


class TestCsvWriter:
    """Tests for the CSV exporter."""

    def test_rendered_text(self, sample_store):
        """Test headers, quoting and number formatting."""
        tables = render_csv_tables(sample_store)

        accounts = tables["accounts"].split("\n")
        assert accounts[0] == "id,name,balance"
        assert accounts[1] == "1,Main,100.0"
        assert accounts[3] == '3,"Épargne ""rainy day""",0.30000000000000004'

        operations = tables["operations"]
        assert operations.startswith("id,type,bank_account_id,category_id,amount,date,description\n")
        assert "102,expense,2,12,800.0,2024-02-01,\n" in operations
        assert '"multi\nline; note"' in operations
        assert "1e-07" in operations

    def test_write_creates_directory_with_three_files(self, tmp_path, sample_store):
        """Test the exporter output layout and encoding."""
        target = tmp_path / "out" / "csv"
        write_csv(target, sample_store)

        assert sorted(p.name for p in target.iterdir()) == [
            "accounts.csv", "categories.csv", "operations.csv",
        ]
        raw = (target / "categories.csv").read_bytes()
        assert not raw.startswith(b"\xef\xbb\xbf")
        assert b"\r\n" not in raw
        assert raw.decode("utf-8") == 'id,type,name\n10,income,Salary\n11,expense,"Food, drinks"\n12,expense,Rent\n'
