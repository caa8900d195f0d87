import json

from recipe_share.app.services import recipe_draft
from recipe_share.app.services.recipe_draft import parse_recipe_draft


def test_full_draft_is_normalized():
    text = json.dumps(
        {
            "recipe": {"title": "  Cookies ", "difficulty": "Medium", "total_time_min": "25", "diet_tags": "vegetarian, nut-free"},
            "ingredients": [
                {"quantity": "1 1/2", "unit": "cup", "item": "flour"},
                "stray text",
                {"idx": 5, "quantity": "½", "unit": "tsp", "item": "salt"},
            ],
            "steps": [{"instruction": "Bake", "temperature_c": "190"}],
            "substitutions": [{"ingredient_idx": "0", "suggestion": "oat flour"}, 7],
        }
    )
    draft = parse_recipe_draft(text)

    assert draft["recipe"]["title"] == "Cookies"
    assert draft["recipe"]["difficulty"] == "medium"
    assert draft["recipe"]["total_time_min"] == 25
    assert draft["recipe"]["diet_tags"] == ["vegetarian", "nut-free"]
    assert draft["recipe"]["public"] is True
    assert [(i["idx"], i["quantity"], i["item"]) for i in draft["ingredients"]] == [(0, 1.5, "flour"), (5, 0.5, "salt")]
    assert draft["steps"] == [{"instruction": "Bake", "temperature_c": 190.0, "idx": 0}]
    assert draft["substitutions"] == [{"ingredient_idx": 0, "suggestion": "oat flour"}]
    assert draft["images"] == []


def test_unknown_difficulty_is_cleared():
    draft = parse_recipe_draft('{"recipe": {"title": "Stew", "difficulty": "extreme"}}')
    assert draft["recipe"]["difficulty"] is None


def test_top_level_recipe_fields_are_accepted():
    draft = parse_recipe_draft('{"title": "Flat Soup", "cuisine": "Thai", "ingredients": [{"item": "broth"}]}')
    assert draft["recipe"]["title"] == "Flat Soup"
    assert draft["recipe"]["cuisine"] == "Thai"
    assert draft["ingredients"][0]["item"] == "broth"


def test_truncated_stream_still_yields_draft():
    text = '{"recipe": {"title": "Pad Thai", "public": false}, "ingredients": [{"idx": 0, "quantity": 2, "unit": "cup", "item": "rice noo'
    draft = parse_recipe_draft(text)
    assert draft["recipe"] == {"title": "Pad Thai", "public": False}
    assert draft["ingredients"][0]["item"] == "rice noo"
    assert draft["steps"] == []


def test_unparseable_text_falls_back_to_field_extraction():
    text = '{"title": "Chili" "cuisine": "Tex-Mex", "total_time_min": 90'
    draft = parse_recipe_draft(text)
    assert draft["recipe"]["title"] == "Chili"
    assert draft["recipe"]["cuisine"] == "Tex-Mex"
    assert draft["recipe"]["total_time_min"] == 90
    assert draft["ingredients"] == [] and draft["steps"] == [] and draft["substitutions"] == []


def test_prose_without_json_gets_placeholder_title():
    draft = parse_recipe_draft("I'm sorry, I can't help with that.")
    assert draft["recipe"] == {"title": "Recipe in Progress", "public": True}


def test_unexpected_failure_returns_failed_draft(monkeypatch):
    def boom(data):
        raise TypeError("unexpected shape")

    monkeypatch.setattr(recipe_draft, "normalize_draft", boom)
    draft = parse_recipe_draft('{"recipe": {"title": "x"}}')
    assert draft["recipe"]["title"] == "Recipe Analysis Failed"
    assert draft["recipe"]["description_md"] == "There was an issue parsing the recipe. Please try again."
    assert draft["ingredients"] == []


def test_non_finite_numbers_are_dropped():
    text = (
        '{"recipe": {"title": "Stew", "total_time_min": Infinity, "nutrition_json": {"kcal": NaN, "protein_g": 12.5}},'
        ' "ingredients": [{"item": "beef", "quantity": NaN}],'
        ' "steps": [{"instruction": "Simmer", "temperature_c": -Infinity, "timer_seconds": NaN}]}'
    )
    draft = parse_recipe_draft(text)
    assert draft["recipe"]["total_time_min"] is None
    assert draft["recipe"]["nutrition_json"] == {"kcal": None, "protein_g": 12.5}
    assert draft["ingredients"][0]["quantity"] is None
    assert draft["steps"][0]["temperature_c"] is None
    assert draft["steps"][0]["timer_seconds"] is None
    json.dumps(draft, allow_nan=False)
