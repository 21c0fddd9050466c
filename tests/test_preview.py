from siggen.models import GeneratedArtifact
from siggen.preview import build_preview_rows, html_to_text


def test_html_to_text_drops_markup_and_styles():
    html = "<html><head><title>t</title></head><body><style>p{}</style><p>Ann  Lee<br>CTO</p><p>ACME</p></body></html>"
    assert html_to_text(html) == "Ann Lee\nCTO\nACME"


def test_build_preview_rows():
    artifacts = [
        GeneratedArtifact(2, "Ann", "ann@realdomain.com", "<p>Hi Ann</p>", "Ann_signature.html"),
        GeneratedArtifact(3, "Bo", "bo@example.com", "<p>{{title}}</p>" + "x" * 200, "Bo_signature.html"),
    ]

    rows = build_preview_rows(artifacts)

    assert rows[0] == {
        "row": 2,
        "name": "Ann",
        "email": "ann@realdomain.com",
        "filename": "Ann_signature.html",
        "deliverable": True,
        "skip_reason": "",
        "unfilled": [],
        "snippet": "Hi Ann",
    }
    assert rows[1]["deliverable"] is False
    assert rows[1]["skip_reason"] == "reserved domain"
    assert rows[1]["unfilled"] == ["title"]
    assert len(rows[1]["snippet"]) == 120
    assert rows[1]["snippet"].endswith("…")
