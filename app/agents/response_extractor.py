"""
Safe text extraction from model responses.

Model clients return many shapes (plain strings, SDK objects, OpenAI-style
dicts, Responses-API style `output` arrays). `extract_text` walks a fixed
list of strategies and returns the first match. When nothing matches it
returns "" instead of stringifying the response: raw SDK objects can carry
client configuration such as API keys.
"""
from collections.abc import Mapping
from typing import Any, Callable, List, Optional

_MISSING = object()


def _field(obj: Any, name: str) -> Any:
    """Read a field from a mapping key or an object attribute"""
    if obj is None:
        return _MISSING
    if isinstance(obj, Mapping):
        return obj.get(name, _MISSING)
    try:
        return getattr(obj, name, _MISSING)
    except Exception:
        return _MISSING


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _string_field(name: str) -> Callable[[Any], Optional[str]]:
    def strategy(response: Any) -> Optional[str]:
        value = _field(response, name)
        return value if isinstance(value, str) else None
    strategy.__name__ = f"string_{name}"
    return strategy


def _output_entry_text(entry: Any) -> str:
    if isinstance(entry, str):
        return entry
    content = _field(entry, "content")
    if _is_list(content) and content:
        text = _field(content[0], "text")
        if isinstance(text, str):
            return text
    text = _field(entry, "text")
    if isinstance(text, str):
        return text
    return ""


def _output_list(response: Any) -> Optional[str]:
    output = _field(response, "output")
    if not _is_list(output):
        return None
    parts = [_output_entry_text(entry) for entry in output]
    return "\n".join(p for p in parts if p)


def _result_list(response: Any) -> Optional[str]:
    result = _field(response, "result")
    if not _is_list(result) or not result:
        return None
    text = _field(_field(result[0], "content"), "text")
    return text if isinstance(text, str) else None


def _choices_list(response: Any) -> Optional[str]:
    choices = _field(response, "choices")
    if not _is_list(choices) or not choices:
        return None
    first = choices[0]
    content = _field(_field(first, "message"), "content")
    if isinstance(content, str):
        return content
    text = _field(first, "text")
    return text if isinstance(text, str) else None


# Tried in order; the first strategy returning a string wins
EXTRACTION_STRATEGIES: List[Callable[[Any], Optional[str]]] = [
    _string_field("text"),
    _string_field("outputText"),
    _string_field("output"),
    _output_list,
    _result_list,
    _choices_list,
]


def extract_text(response: Any) -> str:
    """Return the user-facing text of a model response, or "" if none is found"""
    if response is None:
        return ""
    if isinstance(response, str):
        return response

    for strategy in EXTRACTION_STRATEGIES:
        text = strategy(response)
        if text is not None:
            return text
    return ""
