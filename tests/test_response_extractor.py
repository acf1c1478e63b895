from types import SimpleNamespace

import pytest

from app.agents.response_extractor import extract_text


@pytest.mark.parametrize("response,expected", [
    (None, ""),
    ("plain", "plain"),
    ("", ""),
    ({"text": "hi"}, "hi"),
    ({"outputText": "ot"}, "ot"),
    ({"output": "o"}, "o"),
    ({"choices": [{"message": {"content": "c"}}]}, "c"),
    ({"choices": [{"text": "legacy"}]}, "legacy"),
    ({"result": [{"content": {"text": "r"}}]}, "r"),
    ({"choices": []}, ""),
    ({}, ""),
])
def test_extract_text_shapes(response, expected):
    assert extract_text(response) == expected


def test_text_field_wins_over_choices():
    assert extract_text({"text": "first", "choices": [{"message": {"content": "second"}}]}) == "first"


def test_output_list_joins_entries():
    response = {
        "output": [
            "line one",
            {"content": [{"text": "line two"}]},
            {"text": "line three"},
            {"content": []},
            42,
        ]
    }
    assert extract_text(response) == "line one\nline two\nline three"


def test_object_attributes_are_read():
    assert extract_text(SimpleNamespace(output="agent answer")) == "agent answer"
    choice = SimpleNamespace(message=SimpleNamespace(content="from sdk"))
    assert extract_text(SimpleNamespace(choices=[choice])) == "from sdk"


def test_unrecognized_response_never_leaks_secrets():
    response = {"apiClient": {"clientOptions": {"auth": {"apiKey": "X"}}}}
    out = extract_text(response)
    assert out == ""
    assert "X" not in out

    client = SimpleNamespace(api_key="sk-secret", base_url="https://api.test")
    assert extract_text(SimpleNamespace(client=client)) == ""
