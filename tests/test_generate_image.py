from io import BytesIO

import pytest
from PIL import Image

from recipe_share.app.services import image_service
from recipe_share.app.services.llm_client import LLMError

ANALYZED = {
    "recipe": {"title": "Shakshuka", "description_md": "Eggs poached in spiced tomato sauce"},
    "ingredients": [{"item": i} for i in ["eggs", "tomatoes", "onion", "garlic", "cumin", "paprika", "feta"]],
}


def image_bytes(fmt: str) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), (200, 80, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def fake_model(monkeypatch):
    calls = {}

    async def generate_image(prompt, model=None, size="1024x1024"):
        calls["prompt"] = prompt
        return "https://img.test/tmp.png"

    async def download_bytes(url):
        calls["url"] = url
        return calls.get("payload", image_bytes("PNG"))

    monkeypatch.setattr(image_service.llm_client, "generate_image", generate_image)
    monkeypatch.setattr(image_service.llm_client, "download_bytes", download_bytes)
    return calls


def test_build_image_prompt_uses_first_five_ingredients():
    prompt = image_service.build_image_prompt(ANALYZED["recipe"], ANALYZED["ingredients"])
    assert "Shakshuka: Eggs poached in spiced tomato sauce" in prompt
    assert "(eggs, tomatoes, onion, garlic, cumin)" in prompt
    assert "paprika" not in prompt
    assert "crochet" in prompt


def test_build_image_key_is_sanitized(settings):
    key = image_service.build_image_key("Mom's Chili!")
    assert key.startswith(f"{settings.s3_image_prefix}/mom-s-chili--")
    assert key.endswith(".png")


def test_ensure_png_reencodes_other_formats():
    converted = image_service.ensure_png(image_bytes("JPEG"))
    assert converted.startswith(b"\x89PNG")
    png = image_bytes("PNG")
    assert image_service.ensure_png(png) == png


def test_ensure_png_rejects_garbage():
    with pytest.raises(ValueError):
        image_service.ensure_png(b"definitely not an image")


def test_generate_image_endpoint_stores_png(client, auth_headers, fake_model, storage_root):
    response = client.post("/api/recipes/generate-image", json={"analyzedRecipe": ANALYZED}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["prompt"] == fake_model["prompt"]
    assert data["imageUrl"].startswith("/media/recipe-images/shakshuka-")

    stored = storage_root / data["imageUrl"][len("/media/"):]
    assert stored.read_bytes().startswith(b"\x89PNG")


def test_generate_image_requires_recipe(client, auth_headers, fake_model):
    bodies = (
        {},
        {"analyzedRecipe": {"ingredients": []}},
        {"analyzedRecipe": {"recipe": {}, "ingredients": []}},
        {"analyzedRecipe": {"recipe": {"title": "   "}}},
    )
    for body in bodies:
        response = client.post("/api/recipes/generate-image", json=body, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Analyzed recipe data is required"
    assert "prompt" not in fake_model


def test_generate_image_requires_auth(client):
    response = client.post("/api/recipes/generate-image", json={"analyzedRecipe": ANALYZED})
    assert response.status_code == 401


def test_generate_image_model_failure(client, auth_headers, monkeypatch):
    async def failing(prompt, model=None, size="1024x1024"):
        raise LLMError("content policy")

    monkeypatch.setattr(image_service.llm_client, "generate_image", failing)
    response = client.post("/api/recipes/generate-image", json={"analyzedRecipe": ANALYZED}, headers=auth_headers)
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to generate and upload image"}


def test_generate_image_undecodable_download(client, auth_headers, fake_model):
    fake_model["payload"] = b"<html>expired</html>"
    response = client.post("/api/recipes/generate-image", json={"analyzedRecipe": ANALYZED}, headers=auth_headers)
    assert response.status_code == 500
