import io

import pytest

from garmentqc.contracts.failure import StandardsDecodeError, ValidationError
from garmentqc.standards.ingestion import (
    build_standard,
    decode_rows,
    ingest_standards,
    is_included,
    pivot_sizes,
    read_standard_table,
)

pytestmark = [pytest.mark.unit, pytest.mark.standards]

HEADER = "Check,POM,Description,Tol -,Tol +"

EXAMPLE_CSV = "\n".join([
    f"{HEADER},S,M",
    "TRUE,P1,Waist,-1,1,80,82",
    "FALSE,P2,Inseam,-1,1,70,72",
    "1,P3,Hip,-1,1,100,102",
]) + "\n"


def entries(standard, size):
    return [(e.code, e.description, e.tol_minus, e.tol_plus, e.value) for e in standard.sizes[size]]


class TestIncludeFilter:

    @pytest.mark.parametrize("value", ["TRUE", "true", " True ", "1", " 1"])
    def test_truthy_values(self, value):
        assert is_included(value) is True

    @pytest.mark.parametrize("value", ["FALSE", "0", "", "yes", "x", "11", None])
    def test_everything_else_is_excluded(self, value):
        assert is_included(value) is False


class TestExample:

    def test_example_table(self):
        standard = build_standard(read_standard_table(EXAMPLE_CSV), "trousers", "ST-204")

        assert standard.size_labels == ["S", "M"]
        assert entries(standard, "S") == [
            ("P1", "Waist", "-1", "1", "80"),
            ("P3", "Hip", "-1", "1", "100"),
        ]
        assert entries(standard, "M") == [
            ("P1", "Waist", "-1", "1", "82"),
            ("P3", "Hip", "-1", "1", "102"),
        ]
        all_codes = {e.code for size in standard.sizes.values() for e in size}
        assert "P2" not in all_codes

    def test_missing_size_cell_becomes_empty_string(self):
        csv = f"{HEADER},S,M,L\nTRUE,P1,Waist,-1,1,80,,84\nTRUE,P2,Hip,-1,1,100\n"

        standard = build_standard(read_standard_table(csv), "trousers", "ST-1")

        assert [e.value for e in standard.sizes["M"]] == ["", ""]
        assert [e.value for e in standard.sizes["L"]] == ["84", ""]
        assert [e.code for e in standard.sizes["L"]] == ["P1", "P2"]

    def test_free_text_tolerances_are_kept_verbatim(self):
        csv = f"{HEADER},S\nTRUE,P1,Waist,-1/2,+ 3/4,80 1/2\n"

        standard = build_standard(read_standard_table(csv), "trousers", "ST-1")

        entry = standard.sizes["S"][0]
        assert (entry.tol_minus, entry.tol_plus, entry.value) == ("-1/2", "+ 3/4", "80 1/2")

    def test_surrounding_whitespace_is_kept_except_include_and_code(self):
        csv = f"{HEADER},S\n TRUE , P1 , Waist , -1 , 1 , 80 \n"

        standard = build_standard(read_standard_table(csv), "trousers", "ST-1")

        assert entries(standard, "S") == [("P1", " Waist ", " -1 ", " 1 ", " 80 ")]

    def test_na_like_text_is_not_converted(self):
        csv = f"{HEADER},S\nTRUE,NA,N/A,,,null\n"

        standard = build_standard(read_standard_table(csv), "trousers", "ST-1")

        entry = standard.sizes["S"][0]
        assert (entry.code, entry.description, entry.value) == ("NA", "N/A", "null")

    def test_custom_offset(self):
        csv = "Check,POM,Description,Tol -,Tol +,Notes,S\nTRUE,P1,Waist,-1,1,see sketch,80\n"

        standard = build_standard(read_standard_table(csv), "trousers", "ST-1", offset=6)

        assert standard.size_labels == ["S"]
        assert standard.sizes["S"][0].value == "80"

    def test_trailing_blank_header_cells_are_ignored(self):
        csv = f"{HEADER},S,M,,\nTRUE,P1,Waist,-1,1,80,82,,\n"

        labels, rows = decode_rows(read_standard_table(csv))

        assert labels == ["S", "M"]
        assert rows[0].values == ("80", "82")


class TestDecodeErrors:

    def test_header_without_size_columns(self):
        with pytest.raises(StandardsDecodeError, match="row 1") as exc:
            decode_rows(read_standard_table(f"{HEADER}\nTRUE,P1,Waist,-1,1\n"))
        assert exc.value.row == 1

    def test_duplicate_size_label(self):
        with pytest.raises(StandardsDecodeError, match="Duplicate size label") as exc:
            decode_rows(read_standard_table(f"{HEADER},S,S\nTRUE,P1,Waist,-1,1,80,82\n"))
        assert exc.value.column == "S"

    def test_blank_size_label_between_labels(self):
        with pytest.raises(StandardsDecodeError, match="Blank size label"):
            decode_rows(read_standard_table(f"{HEADER},S,,L\nTRUE,P1,Waist,-1,1,80,81,82\n"))

    def test_included_row_without_code(self):
        csv = f"{HEADER},S\nTRUE,P1,Waist,-1,1,80\n1,,Hip,-1,1,100\n"

        with pytest.raises(StandardsDecodeError) as exc:
            decode_rows(read_standard_table(csv))

        assert exc.value.row == 3
        assert exc.value.column == "POM"

    def test_excluded_row_without_code_is_fine(self):
        csv = f"{HEADER},S\nTRUE,P1,Waist,-1,1,80\nFALSE,,,,,\n"
        labels, rows = decode_rows(read_standard_table(csv))
        assert len(rows) == 2

    def test_row_wider_than_header(self):
        with pytest.raises(StandardsDecodeError, match="not valid CSV"):
            read_standard_table(f"{HEADER},S\nTRUE,P1,Waist,-1,1,80,81,82,83\n")

    def test_empty_input(self):
        with pytest.raises(StandardsDecodeError, match="empty"):
            read_standard_table(io.StringIO(""))

    def test_decode_error_is_a_validation_error(self):
        assert issubclass(StandardsDecodeError, ValidationError)


class TestValidation:

    def test_no_included_rows(self):
        csv = f"{HEADER},S\nFALSE,P1,Waist,-1,1,80\n0,P2,Hip,-1,1,100\n"

        with pytest.raises(ValidationError, match="No rows selected"):
            build_standard(read_standard_table(csv), "trousers", "ST-1")

    @pytest.mark.parametrize("garment_type,style_code", [("", "ST-1"), ("trousers", ""), ("trousers", "   ")])
    def test_empty_identifiers(self, garment_type, style_code):
        with pytest.raises(ValidationError):
            build_standard(read_standard_table(EXAMPLE_CSV), garment_type, style_code)

    def test_pivot_with_no_rows_gives_empty_lists(self):
        assert pivot_sizes(["S", "M"], []) == {"S": [], "M": []}


class TestIngest:

    def test_ingest_from_path_uses_file_stem(self, record_store, temp_dir):
        path = temp_dir / "ST-204.csv"
        path.write_text(EXAMPLE_CSV)

        standard = ingest_standards(record_store, path, "trousers")

        assert standard.standard_id == "trousers-ST-204"
        stored = record_store.get_standard("trousers", "ST-204")
        assert entries(stored, "M") == entries(standard, "M")
        assert stored.unit == "cm"

    def test_reingest_replaces_previous_sizes(self, record_store):
        first = f"{HEADER},S,M,L\nTRUE,P1,Waist,-1,1,80,82,84\n"
        second = f"{HEADER},M,XL\nTRUE,P1,Waist,-1,1,82,86\n"

        ingest_standards(record_store, first, "trousers", style_code="ST-9")
        ingest_standards(record_store, second, "trousers", style_code="ST-9")

        stored = record_store.get_standard("trousers", "ST-9")
        assert stored.size_labels == ["M", "XL"]
        assert "S" not in stored.sizes

    def test_ingest_stream_requires_style_code(self, record_store):
        with pytest.raises(ValidationError, match="style_code"):
            ingest_standards(record_store, io.StringIO(EXAMPLE_CSV), "trousers")

    def test_failed_ingest_writes_nothing(self, record_store):
        csv = f"{HEADER},S\nFALSE,P1,Waist,-1,1,80\n"

        with pytest.raises(ValidationError):
            ingest_standards(record_store, csv, "trousers", style_code="ST-1")

        assert record_store.get_standard("trousers", "ST-1") is None

    def test_ingest_with_unit(self, record_store):
        standard = ingest_standards(record_store, EXAMPLE_CSV, "trousers", style_code="ST-1", unit="in")
        assert standard.unit == "in"
