import json

import pytest

from recipe_share.app.services.json_repair import (
    JsonScanner,
    ScanState,
    extract_recipe_fields,
    parse_partial_json,
    repair_json,
)

VALID_DRAFT = {
    "recipe": {"title": "Pancakes", "total_time_min": 20, "difficulty": "easy", "public": True},
    "ingredients": [{"idx": 0, "quantity": 1.5, "unit": "cup", "item": "flour", "notes": None}],
    "steps": [{"idx": 0, "instruction": "Whisk, then fry.", "temperature_c": 190.5}],
    "substitutions": [],
    "images": [],
}


def test_valid_json_is_untouched():
    text = json.dumps(VALID_DRAFT, indent=2)
    assert repair_json(text) == text
    assert parse_partial_json(text) == json.loads(text)


def test_scanner_reports_balanced_and_ignores_trailing_text():
    scanner = JsonScanner().feed('Sure! {"a": {"b": [1, 2]}} hope that helps {"c": 1}')
    assert scanner.state is ScanState.BALANCED
    assert scanner.finish() == '{"a": {"b": [1, 2]}}'


def test_scanner_without_object_start():
    scanner = JsonScanner().feed("no json here")
    assert scanner.state is ScanState.SCANNING
    assert scanner.finish() is None
    assert parse_partial_json("no json here") is None


def test_truncated_trailing_string_is_closed():
    text = '{"recipe": {"title": "Banana Bre'
    assert parse_partial_json(text) == {"recipe": {"title": "Banana Bre"}}


@pytest.mark.parametrize("objects,arrays", [(1, 0), (2, 1), (3, 2), (4, 3)])
def test_appends_exact_closers_for_unclosed_containers(objects, arrays):
    # {"a": [{"a": [ ... 1
    prefix = ""
    for level in range(objects):
        prefix += '{"a": '
        if level < arrays:
            prefix += "["
    text = prefix + "1"
    repaired = repair_json(text)
    assert repaired[len(text):].count("}") == objects
    assert repaired[len(text):].count("]") == arrays
    assert isinstance(json.loads(repaired), dict)


def test_trailing_commas_are_dropped():
    assert parse_partial_json('{"a": [1, 2, ], "b": {"c": 3,},}') == {"a": [1, 2], "b": {"c": 3}}


def test_dangling_key_and_colon():
    assert parse_partial_json('{"title": "Soup", "cuisine"') == {"title": "Soup"}
    assert parse_partial_json('{"title": "Soup", "cuisine":') == {"title": "Soup", "cuisine": None}
    assert parse_partial_json('{"title": "Soup", "cuis') == {"title": "Soup"}


def test_partial_literals_are_completed_or_trimmed():
    assert parse_partial_json('{"public": tr') == {"public": True}
    assert parse_partial_json('{"public": fal') == {"public": False}
    assert parse_partial_json('{"notes": nu') == {"notes": None}
    assert parse_partial_json('{"quantity": 1.') == {"quantity": 1}
    assert parse_partial_json('{"quantity": -') == {"quantity": None}


def test_escape_at_end_of_input():
    assert parse_partial_json('{"tip": "say \\"hi\\" then \\') == {"tip": 'say "hi" then '}
    assert parse_partial_json('{"tip": "caf\\u00') == {"tip": "caf"}


def test_escaped_backslash_before_u_is_kept():
    text = r'{"title": "Tacos", "tip": "path C:\\u00'
    assert repair_json(text) == r'{"title": "Tacos", "tip": "path C:\\u00"}'
    assert parse_partial_json(text) == {"title": "Tacos", "tip": "path C:\\u00"}
    assert parse_partial_json(r'{"tip": "C:\\\u00') == {"tip": "C:\\"}


def test_unterminated_string_is_closed_at_end_of_line():
    text = '{"title": "Pancakes,\n"cuisine": "American"}'
    assert parse_partial_json(text) == {"title": "Pancakes", "cuisine": "American"}


def test_fenced_block_and_prose_prefix():
    fenced = 'Here you go:\n```json\n{"title": "Tacos"}\n```\nEnjoy!'
    assert parse_partial_json(fenced) == {"title": "Tacos"}
    unclosed_fence = '```json\n{"title": "Tacos", "steps": [{"idx": 0'
    assert parse_partial_json(unclosed_fence) == {"title": "Tacos", "steps": [{"idx": 0}]}


def test_wrong_closer_closes_innermost_container():
    assert parse_partial_json('{"a": [1, 2}, "b": 3}') == {"a": [1, 2], "b": 3}


def test_extract_recipe_fields():
    text = '"title": "Chili", "difficulty": "Hard", "total_time_min": 90, "active_time_min": "x"'
    assert extract_recipe_fields(text) == {"title": "Chili", "difficulty": "Hard", "total_time_min": 90}
