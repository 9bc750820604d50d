"""
Tests for relevance refiners and their LLM providers.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
import requests

from marketplace_watcher.components.relevance_refiner import (
    KeywordRelevanceRefiner,
    LLMRelevanceRefiner,
    LLMResponse,
    LocalLLMClient,
    PassthroughRefiner,
    RelevanceParseError,
    create_refiner,
)
from marketplace_watcher.models.config import RelevanceConfig
from marketplace_watcher.models.listing import Listing
from marketplace_watcher.utils.error_handling import get_degradation_manager


def _listings(*titles):
    return [
        Listing(id=str(i), title=title, price="R$ 10,00", url=f"https://x.com/{i}")
        for i, title in enumerate(titles)
    ]


def _provider(content=None, side_effect=None):
    provider = Mock()
    provider.complete = AsyncMock(
        return_value=LLMResponse(content=content or "", provider="test", model="m", response_time=0.1),
        side_effect=side_effect,
    )
    return provider


class TestKeywordRelevanceRefiner:
    """Test cases for the token-matching refiner."""

    @pytest.mark.asyncio
    async def test_all_tokens_required(self):
        listings = _listings("Camisa Neymar Santos", "Chaveiro Santos", "NEYMAR jr camisa")

        kept = await KeywordRelevanceRefiner().refine(listings, "camisa neymar")

        assert [listing.id for listing in kept] == ["0", "2"]

    @pytest.mark.asyncio
    async def test_accents_ignored(self):
        kept = await KeywordRelevanceRefiner().refine(_listings("Tênis Nike"), "tenis")
        assert len(kept) == 1

    @pytest.mark.asyncio
    async def test_short_keyword_keeps_everything(self):
        listings = _listings("A", "B")
        assert await KeywordRelevanceRefiner().refine(listings, "x") == listings


class TestLLMRelevanceRefiner:
    """Test cases for the LLM refiner."""

    def test_build_prompt(self):
        refiner = LLMRelevanceRefiner(_provider())
        prompt = refiner.build_prompt(_listings("Camisa", "Boné"), "neymar")
        assert prompt == 'Keyword: "neymar"\n\nProducts:\n0. Camisa\n1. Boné'

    @pytest.mark.parametrize(
        "content,expected",
        [
            ("[0, 2]", [0, 2]),
            ("[]", []),
            ("Relevant: [1, 1, 5, -1, true, \"2\", 0]", [1, 0]),
            ("```json\n[2]\n```", [2]),
        ],
    )
    def test_parse_indices(self, content, expected):
        assert LLMRelevanceRefiner.parse_indices(content, 3) == expected

    @pytest.mark.parametrize("content", ["nenhum", '{"relevant": [0]}', "[0, 1"])
    def test_parse_indices_rejects_non_array(self, content):
        with pytest.raises(RelevanceParseError):
            LLMRelevanceRefiner.parse_indices(content, 3)

    @pytest.mark.asyncio
    async def test_refine_keeps_selected(self):
        refiner = LLMRelevanceRefiner(_provider("[1]"))
        listings = _listings("Adesivo", "Camisa Neymar")

        kept = await refiner.refine(listings, "neymar")

        assert kept == [listings[1]]

    @pytest.mark.asyncio
    async def test_empty_batch_skips_model(self):
        provider = _provider("[0]")
        assert await LLMRelevanceRefiner(provider).refine([], "neymar") == []
        provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_is_fail_open(self):
        refiner = LLMRelevanceRefiner(_provider(side_effect=RuntimeError("timeout")))
        listings = _listings("A", "B")

        kept = await refiner.refine(listings, "neymar")

        assert kept == listings
        assert get_degradation_manager().is_degraded("relevance_refiner")

    @pytest.mark.asyncio
    async def test_unparsable_answer_is_fail_open(self):
        refiner = LLMRelevanceRefiner(_provider("I think all of them"))
        listings = _listings("A", "B")
        assert await refiner.refine(listings, "neymar") == listings

    @pytest.mark.asyncio
    async def test_success_restores_degraded_component(self):
        degradation = get_degradation_manager()
        degradation.degrade_component("relevance_refiner", "earlier failure", "pass all")

        await LLMRelevanceRefiner(_provider("[0]")).refine(_listings("A"), "a")

        assert not degradation.is_degraded("relevance_refiner")


class TestLocalLLMClient:
    """Test cases for the Ollama client."""

    @pytest.mark.asyncio
    async def test_complete(self):
        client = LocalLLMClient({"model": "llama3", "base_url": "http://ollama:11434"})
        response = Mock()
        response.json.return_value = {"response": "[0]", "eval_count": 7}

        with patch("requests.post", return_value=response) as post:
            result = await client.complete("system", "prompt")

        assert result.content == "[0]"
        assert result.tokens_used == 7
        assert post.call_args[0][0] == "http://ollama:11434/api/generate"
        assert post.call_args[1]["json"]["stream"] is False

    @pytest.mark.asyncio
    async def test_request_error_becomes_runtime_error(self):
        client = LocalLLMClient({"model": "llama3"})
        with patch("requests.post", side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(RuntimeError):
                await client.complete("system", "prompt")


class TestCreateRefiner:
    """Test cases for create_refiner."""

    def test_disabled_or_missing(self):
        assert isinstance(create_refiner(None), PassthroughRefiner)
        assert isinstance(create_refiner(RelevanceConfig(enabled=False)), PassthroughRefiner)

    def test_keyword(self):
        refiner = create_refiner(RelevanceConfig(enabled=True, type="keyword"))
        assert isinstance(refiner, KeywordRelevanceRefiner)

    def test_local(self):
        refiner = create_refiner(
            RelevanceConfig(enabled=True, type="local", local={"model": "llama3"})
        )
        assert isinstance(refiner, LLMRelevanceRefiner)
        assert isinstance(refiner.provider, LocalLLMClient)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            create_refiner(RelevanceConfig(enabled=True, type="magic"))
