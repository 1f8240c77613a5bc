"""
Unit tests for tolerant JSON parsing of model output (leadpilot/engine/ai_json.py).
"""

import pytest

from leadpilot.engine.ai_json import AIJSONError, normalize_json_text, parse_ai_json


# ---------------------------------------------------------------------------
# Each repair stage
# ---------------------------------------------------------------------------

def test_strict_json_parses_directly():
    assert parse_ai_json('{"a": 1}') == {'a': 1}


def test_code_fenced_json():
    assert parse_ai_json('```json\n{"a":1}\n```') == {'a': 1}


def test_single_quotes_and_trailing_comma():
    assert parse_ai_json("{'a':1,}") == {'a': 1}


def test_json_embedded_in_prose():
    assert parse_ai_json('noise {"a":1} noise') == {'a': 1}


def test_plain_text_raises():
    with pytest.raises(AIJSONError):
        parse_ai_json('not json at all')


def test_none_raises():
    with pytest.raises(AIJSONError):
        parse_ai_json(None)


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_ai_json('still not json')


# ---------------------------------------------------------------------------
# Realistic model output
# ---------------------------------------------------------------------------

def test_array_with_preamble_and_fences():
    text = (
        "Here are two businesses I found:\n"
        "```json\n"
        '[{"name": "Moda Kuaför", "address": "Moda Cd. 12"}, {"name": "Yeldeğirmeni Fırın", "address": "Karakolhane Cd. 3"},]\n'
        "```\n"
        "Let me know if you need more."
    )
    result = parse_ai_json(text)
    assert [item['name'] for item in result] == ['Moda Kuaför', 'Yeldeğirmeni Fırın']


def test_smart_quotes_are_normalized():
    assert parse_ai_json('{“email”: “info@acme.com”}') == {'email': 'info@acme.com'}


def test_brackets_inside_strings_do_not_end_the_span():
    text = 'Result: {"bio": "Coffee {and} cake ]", "username": "acme"} -- end'
    assert parse_ai_json(text) == {'bio': 'Coffee {and} cake ]', 'username': 'acme'}


def test_first_span_wins_when_several_present():
    assert parse_ai_json('a {"x": 1} b {"y": 2}') == {'x': 1}


def test_normalize_strips_fences_and_trailing_commas():
    assert normalize_json_text('```\n[1, 2,]\n```') == '[1, 2]'
