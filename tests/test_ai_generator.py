import asyncio

import httpx
import openai
import pytest

from colorbook.errors import MalformedResponse, TransportError, ValidationError
from colorbook.services.ai_generator import TextGenerator, extract_json
from conftest import fake_openai


def generator(*replies):
    return TextGenerator(fake_openai(*replies), "deepseek-chat")


def test_extract_json_strips_fences_and_chatter():
    assert extract_json('```json\n[{"a": 1}]\n```') == [{"a": 1}]
    assert extract_json('Sure! Here you go: {"x": "y"} Enjoy.', "{") == {"x": "y"}
    with pytest.raises(MalformedResponse):
        extract_json("no json at all")


def test_themes_keep_only_complete_entries():
    gen = generator(
        [
            {"title": "Owl", "description": "night bird", "prompt": "owl on a branch"},
            {"title": "Fox"},
            "junk",
            {"title": "Cat", "prompt": "cat in a basket"},
        ]
    )
    themes = asyncio.run(gen.generate_themes("animals", count=5))
    assert [t["title"] for t in themes] == ["Owl", "Cat"]
    assert themes[1]["description"] == ""


@pytest.mark.parametrize("keyword,count", [("", 3), ("cats", 0), ("cats", 51)])
def test_themes_validate_input(keyword, count):
    with pytest.raises(ValidationError):
        asyncio.run(generator().generate_themes(keyword, count=count))


def test_connection_error_maps_to_transport_error():
    err = openai.APIConnectionError(request=httpx.Request("POST", "https://api.deepseek.com/v1/chat/completions"))
    with pytest.raises(TransportError):
        asyncio.run(generator(err).generate_themes("cats"))


def test_content_falls_back_to_template():
    err = openai.APIConnectionError(request=httpx.Request("POST", "https://api.deepseek.com/v1/chat/completions"))
    out = asyncio.run(generator(err).generate_content("cats", "Sleepy Cat", "a cat"))
    assert "Sleepy Cat" in out["text"]
    assert out["warning"].startswith("Used default text")


def test_content_passes_model_through():
    gen = generator("Color the cat orange.")
    out = asyncio.run(gen.generate_content("cats", "Sleepy Cat", "a cat", model="deepseek-reasoner"))
    assert out == {"text": "Color the cat orange."}
    assert gen.client.chat.completions.calls[0]["model"] == "deepseek-reasoner"


def test_translate_items_shapes_output():
    gen = generator(
        {
            "c1": {"en": {"name": "Animals", "description": "All animals"}, "ja": {"name": "動物", "extra": "x"}},
            "ghost": {"en": {"name": "?"}},
        }
    )
    out = asyncio.run(
        gen.translate_items("categories", [{"id": "c1", "name": "动物", "description": "所有动物"}], ["en", "ja"])
    )
    assert out == {"c1": {"en": {"name": "Animals", "description": "All animals"}, "ja": {"name": "動物"}}}


@pytest.mark.parametrize(
    "kind,items,langs",
    [
        ("users", [{"id": "1"}], ["en"]),
        ("tags", [], ["en"]),
        ("tags", [{"id": "1"}], []),
        ("tags", [{"id": "1"}], ["klingon"]),
        ("tags", [{"name": "no id"}], ["en"]),
    ],
)
def test_translate_items_validates(kind, items, langs):
    with pytest.raises(ValidationError):
        asyncio.run(generator().translate_items(kind, items, langs))
