from siggen.data_sources import parse_table
from siggen.models import PlaceholderSet, Table, ValidationStatus
from siggen.placeholders import extract_placeholders
from siggen.validator import MAX_ROW_DIAGNOSTICS, validate


TEMPLATE = "Hi {{name}}, email {{email}}"


def test_exact_match_is_valid_and_keeps_table():
    table = parse_table("name,email\nAnn,a@x.com\nBo,b@x.com\n")

    result = validate(extract_placeholders(TEMPLATE), table)

    assert result.status is ValidationStatus.VALID
    assert result.is_valid
    assert result.table is table
    assert len(result.table.rows) == 2
    assert result.diagnostics == ()


def test_headers_compare_case_insensitively():
    table = parse_table("NAME;Email\nAnn;a@x.com\n")
    assert validate(extract_placeholders(TEMPLATE), table).is_valid


def test_missing_and_extra_columns():
    placeholders = extract_placeholders("{{name}} {{email}} {{title}}")
    table = parse_table("name,email,phone\nAnn,a@x.com,123\n")

    result = validate(placeholders, table)

    assert result.status is ValidationStatus.INVALID
    assert result.missing == ("title",)
    assert result.extra == ("phone",)
    assert result.diagnostics == ("Missing columns: title", "Unexpected columns: phone")
    assert result.table is None


def test_blank_value_names_row_and_field():
    table = parse_table("name,email\nAnn,a@x.com\nBo,  \n")

    result = validate(extract_placeholders(TEMPLATE), table)

    assert result.status is ValidationStatus.INVALID
    assert result.diagnostics == ("Row 3: missing value for 'email'.",)
    assert result.table is None


def test_row_diagnostics_are_capped():
    rows = "".join(f"Person {i},\n" for i in range(12))
    table = parse_table("name,email\n" + rows)

    result = validate(extract_placeholders(TEMPLATE), table)

    assert len(result.violations) == 12
    assert len(result.diagnostics) == MAX_ROW_DIAGNOSTICS + 1
    assert result.diagnostics[0] == "Row 2: missing value for 'email'."
    assert result.diagnostics[-1] == "(+2 more)"


def test_not_attempted_without_table_or_placeholders():
    placeholders = extract_placeholders(TEMPLATE)

    assert validate(placeholders, None).status is ValidationStatus.NOT_ATTEMPTED
    assert validate(placeholders, Table()).diagnostics == ("No table loaded.",)

    result = validate(PlaceholderSet(), parse_table("name\nAnn\n"))
    assert result.status is ValidationStatus.NOT_ATTEMPTED
    assert result.diagnostics == ("Template has no placeholders.",)
