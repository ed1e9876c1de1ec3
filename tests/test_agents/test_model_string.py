"""Tests for model string parsing."""

import pytest

from parley.agents.model_string import ModelStringParser


class TestParse:
    def test_provider_only(self):
        p = ModelStringParser.parse("openai")
        assert p.provider_name == "openai"
        assert p.chat_model_name is None

    def test_colon(self):
        p = ModelStringParser.parse("openai:gpt-4.1-mini")
        assert (p.provider_name, p.chat_model_name) == ("openai", "gpt-4.1-mini")

    def test_slash(self):
        p = ModelStringParser.parse("openai/gpt-4.1-mini")
        assert (p.provider_name, p.chat_model_name) == ("openai", "gpt-4.1-mini")

    def test_colon_wins_over_slash(self):
        p = ModelStringParser.parse("openrouter:google/gemini-2.5-flash")
        assert (p.provider_name, p.chat_model_name) == ("openrouter", "google/gemini-2.5-flash")

    def test_model_name_with_colon(self):
        assert ModelStringParser.parse("ollama:llama3.1:8b").chat_model_name == "llama3.1:8b"

    def test_slash_then_colon_in_model_name(self):
        p = ModelStringParser.parse("ollama/llama3.1:8b")
        assert (p.provider_name, p.chat_model_name) == ("ollama", "llama3.1:8b")

    def test_query(self):
        p = ModelStringParser.parse("openai?chat=gpt-4o-mini&embeddings=text-embedding-3-small&media=gpt-image-1")
        assert p.chat_model_name == "gpt-4o-mini"
        assert p.embeddings_model_name == "text-embedding-3-small"
        assert p.media_model_name == "gpt-image-1"

    @pytest.mark.parametrize("bad", ["", ":gpt-4", "openai?vision=x"])
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            ModelStringParser.parse(bad)


class TestStr:
    def test_provider_only(self):
        assert str(ModelStringParser("openai")) == "openai"

    def test_chat_only(self):
        assert str(ModelStringParser("openai", "gpt-4.1")) == "openai:gpt-4.1"

    def test_query_form(self):
        s = str(ModelStringParser("openai", "gpt-4.1", "text-embedding-3-small"))
        assert s == "openai?chat=gpt-4.1&embeddings=text-embedding-3-small"
        assert ModelStringParser.parse(s) == ModelStringParser("openai", "gpt-4.1", "text-embedding-3-small")
