"""
Unit tests for JSON recovery of summarizer output.
"""

from feedlens.utils.json_recovery import extract_balanced_object, recover_json, strip_trailing_commas


def test_direct_json():
    assert recover_json('{"summary": "ok"}') == {"summary": "ok"}


def test_code_fence_with_surrounding_prose():
    raw = 'Sure! Here is the report:\n```json\n{"summary": "ok", "trends": []}\n```\nLet me know.'
    assert recover_json(raw) == {"summary": "ok", "trends": []}


def test_balanced_braces_in_prose():
    raw = 'Result: {"summary": "uses {braces} inside", "n": {"a": 1}} trailing words'
    assert recover_json(raw) == {"summary": "uses {braces} inside", "n": {"a": 1}}


def test_trailing_commas():
    raw = '{"summary": "ok", "recommendations": [{"advice": "x",},],}'
    assert recover_json(raw) == {"summary": "ok", "recommendations": [{"advice": "x"}]}


def test_unrecoverable_output():
    assert recover_json(None) is None
    assert recover_json("   ") is None
    assert recover_json("no json here") is None
    assert recover_json('{"summary": ') is None


def test_non_object_json_rejected():
    assert recover_json("[1, 2, 3]") is None


def test_extract_balanced_object_skips_escaped_quotes():
    text = 'x {"a": "quote \\" and }"} y'
    assert extract_balanced_object(text) == '{"a": "quote \\" and }"}'


def test_strip_trailing_commas():
    assert strip_trailing_commas('[1, 2, ]') == '[1, 2]'
