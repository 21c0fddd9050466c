from siggen.models import TokenSyntax
from siggen.placeholders import (
    csv_template_header,
    extract_placeholders,
    referenced_headers,
    residual_tokens,
    write_csv_template,
)


def test_extract_dedupes_case_insensitively_and_sorts():
    found = extract_placeholders("{{b}} {{ A }} {{a}} {{B}} {{c}} {{ }}")

    assert found.names == ("A", "b", "c")
    assert found.syntax is TokenSyntax.DOUBLE
    assert "a" in found and "C" in found
    assert "d" not in found


def test_extract_ignores_single_braces_and_empty_template():
    assert extract_placeholders("{name} and {{}}").names == ()
    assert not extract_placeholders("")
    assert not extract_placeholders(None)


def test_extract_ignores_tokens_spanning_lines():
    assert extract_placeholders("{{first\nname}} {{title}}").names == ("title",)


def test_referenced_headers_in_template_order():
    found = referenced_headers("{Email} is for {name}", ["name", "email", "phone"])

    assert found.names == ("email", "name")
    assert found.syntax is TokenSyntax.SINGLE


def test_csv_template_header_quotes_only_when_needed():
    line = csv_template_header(["name", "a;b", 'say "hi"', "plain"])
    assert line == 'name;"a;b";"say ""hi""";plain\r\n'


def test_csv_template_header_from_placeholder_set():
    found = extract_placeholders("{{title}} {{name}} {{email}}")
    assert csv_template_header(found) == "email;name;title\r\n"


def test_write_csv_template(tmp_path):
    found = extract_placeholders("{{name}} {{email}}")

    path = write_csv_template(str(tmp_path / "sub" / "template.csv"), found)

    assert path.read_bytes() == b"email;name\r\n"


def test_residual_tokens():
    assert residual_tokens("Hi Ann") == []
    assert residual_tokens("Hi {{ name }}") == ["name"]
