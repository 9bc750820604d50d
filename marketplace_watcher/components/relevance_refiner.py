"""
Relevance refinement of scraped listings.

Marketplace search is fuzzy: a search for a player's name returns shirts,
stickers and unrelated items that merely share a word. A refiner narrows a
batch of listings to those that match what the keyword means. Every
implementation is fail-open: on any internal failure the batch is returned
unchanged.
"""

import asyncio
import json
import os
import re
import time
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import anthropic
import openai
import requests

from ..models.config import RelevanceConfig
from ..models.listing import Listing
from ..utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    get_degradation_manager,
    get_error_tracker,
)
from ..utils.logging import get_logger

logger = get_logger("relevance.refiner")

COMPONENT_NAME = "relevance_refiner"

SYSTEM_PROMPT = (
    "You are a relevance filter for Brazilian marketplace products. Given a "
    "search keyword and a list of product titles, determine which products are "
    "relevant to what the user is looking for. Consider that keywords may refer "
    "to people, brands, characters, teams, etc. Respond with ONLY a JSON array "
    "of the product indices (0-based) that ARE relevant."
)

_JSON_ARRAY = re.compile(r"\[[^\[\]]*\]", re.DOTALL)


class RelevanceParseError(ValueError):
    """The model answer is not a JSON array of indices."""


@dataclass
class LLMResponse:
    """Raw response from LLM provider."""

    content: str
    provider: str
    model: str
    response_time: float
    tokens_used: Optional[int] = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.timeout = config.get("timeout", 30)
        self.max_tokens = config.get("max_tokens", 1024)

    @abstractmethod
    async def complete(self, system: str, prompt: str) -> LLMResponse:
        """Send a prompt and return the response."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connection to the LLM provider."""
        pass


class LocalLLMClient(LLMProvider):
    """Client for a locally hosted Ollama model."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get("base_url") or os.getenv(
            "OLLAMA_BASE_URL", "http://localhost:11434"
        )
        self.model = config["model"]
        self.timeout = config.get("timeout", 60)

    def _generate(self, system: str, prompt: str) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "system": system,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.0, "num_predict": 256},
        }
        response = requests.post(
            f"{self.base_url}/api/generate", json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    async def complete(self, system: str, prompt: str) -> LLMResponse:
        """Complete prompt using the local Ollama model."""
        start_time = time.time()

        try:
            result = await asyncio.to_thread(self._generate, system, prompt)
        except requests.exceptions.RequestException as e:
            raise RuntimeError(f"Local LLM request failed: {e}") from e

        return LLMResponse(
            content=result.get("response", ""),
            provider="local",
            model=self.model,
            response_time=time.time() - start_time,
            tokens_used=result.get("eval_count"),
        )

    def test_connection(self) -> bool:
        """Test connection to local Ollama instance."""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Local LLM connection test failed: {e}")
            return False

        model_names = [model.get("name") for model in response.json().get("models", [])]
        if self.model not in model_names and f"{self.model}:latest" not in model_names:
            logger.warning(
                f"Model {self.model} not found in available models: {model_names}"
            )
            return False
        return True


class APILLMClient(LLMProvider):
    """Client for the Anthropic or OpenAI APIs."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.provider = config["provider"]
        self.model = config["model"]
        self.api_key = config.get("api_key")

        self.client: Union[openai.OpenAI, anthropic.Anthropic]
        if self.provider == "openai":
            self.client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)
        elif self.provider == "anthropic":
            self.client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout)
        else:
            raise ValueError(f"Unsupported API provider: {self.provider}")

    async def complete(self, system: str, prompt: str) -> LLMResponse:
        """Complete prompt using the external API service."""
        start_time = time.time()

        try:
            if self.provider == "openai":
                content, tokens = await asyncio.to_thread(
                    self._complete_openai, system, prompt
                )
            else:
                content, tokens = await asyncio.to_thread(
                    self._complete_anthropic, system, prompt
                )
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            raise RuntimeError(f"{self.provider} request failed: {e}") from e

        return LLMResponse(
            content=content,
            provider=self.provider,
            model=self.model,
            response_time=time.time() - start_time,
            tokens_used=tokens,
        )

    def _complete_openai(self, system: str, prompt: str):
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=0,
            max_tokens=self.max_tokens,
        )
        content = response.choices[0].message.content or ""
        tokens = response.usage.total_tokens if response.usage else None
        return content, tokens

    def _complete_anthropic(self, system: str, prompt: str):
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        content = response.content[0].text if response.content else ""
        tokens = response.usage.input_tokens + response.usage.output_tokens
        return content, tokens

    def test_connection(self) -> bool:
        """Test connection to API service."""
        try:
            if self.provider == "openai":
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": "Test"}],
                    max_tokens=1,
                )
            else:
                self.client.messages.create(
                    model=self.model,
                    max_tokens=1,
                    messages=[{"role": "user", "content": "Test"}],
                )
            return True
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            logger.error(f"API LLM connection test failed: {e}")
            return False


class BaseRelevanceRefiner(ABC):
    """Base class for relevance refiners."""

    name = "base"

    @abstractmethod
    async def refine(self, listings: List[Listing], keyword: str) -> List[Listing]:
        """Return the subset of ``listings`` relevant to ``keyword``."""


class PassthroughRefiner(BaseRelevanceRefiner):
    """Keeps every listing."""

    name = "passthrough"

    async def refine(self, listings: List[Listing], keyword: str) -> List[Listing]:
        return list(listings)


def _fold(text: str) -> str:
    """Lowercase and strip accents."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class KeywordRelevanceRefiner(BaseRelevanceRefiner):
    """Keeps listings whose title contains every keyword token."""

    name = "keyword"

    def __init__(self, min_token_length: int = 2):
        self.min_token_length = min_token_length

    def _tokens(self, text: str) -> List[str]:
        return [
            token
            for token in re.split(r"[^\w]+", _fold(text))
            if len(token) >= self.min_token_length
        ]

    async def refine(self, listings: List[Listing], keyword: str) -> List[Listing]:
        tokens = self._tokens(keyword)
        if not tokens:
            return list(listings)

        kept = []
        for listing in listings:
            title_tokens = set(self._tokens(listing.title))
            if all(token in title_tokens for token in tokens):
                kept.append(listing)
        return kept


class LLMRelevanceRefiner(BaseRelevanceRefiner):
    """Asks a language model which listing titles match the keyword."""

    name = "llm"

    def __init__(self, provider: LLMProvider, system_prompt: str = SYSTEM_PROMPT):
        self.provider = provider
        self.system_prompt = system_prompt

    def build_prompt(self, listings: List[Listing], keyword: str) -> str:
        numbered = "\n".join(
            f"{index}. {listing.title}" for index, listing in enumerate(listings)
        )
        return f'Keyword: "{keyword}"\n\nProducts:\n{numbered}'

    @staticmethod
    def parse_indices(content: str, count: int) -> List[int]:
        """
        Extract valid, de-duplicated indices from the model answer.

        Raises:
            RelevanceParseError: If the answer holds no JSON array.
        """
        text = content.strip()
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Answers wrapped in prose or code fences
            match = _JSON_ARRAY.search(text)
            if not match:
                raise RelevanceParseError(f"No JSON array in answer: {text[:200]!r}")
            try:
                data = json.loads(match.group(0))
            except json.JSONDecodeError as e:
                raise RelevanceParseError(f"Malformed JSON array: {e}") from e

        if not isinstance(data, list):
            raise RelevanceParseError(f"Answer is not an array: {type(data).__name__}")

        indices: List[int] = []
        for item in data:
            if isinstance(item, bool) or not isinstance(item, int):
                continue
            if 0 <= item < count and item not in indices:
                indices.append(item)
        return indices

    async def refine(self, listings: List[Listing], keyword: str) -> List[Listing]:
        if not listings:
            return []

        degradation = get_degradation_manager()

        try:
            response = await self.provider.complete(
                self.system_prompt, self.build_prompt(listings, keyword)
            )
            indices = self.parse_indices(response.content, len(listings))
        except (RuntimeError, RelevanceParseError) as e:
            get_error_tracker().record_error(
                component=COMPONENT_NAME,
                category=ErrorCategory.RELEVANCE,
                severity=ErrorSeverity.LOW,
                message=f"Relevance refinement failed, keeping all listings: {e}",
                exception=e,
                context={"keyword": keyword, "listings": len(listings)},
            )
            degradation.degrade_component(
                COMPONENT_NAME,
                reason=str(e),
                fallback_behavior="all listings pass unfiltered",
                severity=ErrorSeverity.LOW,
            )
            return list(listings)

        if degradation.is_degraded(COMPONENT_NAME):
            degradation.restore_component(COMPONENT_NAME)

        kept = [listings[index] for index in indices]
        logger.info(
            f'"{keyword}": {len(listings)} -> {len(kept)} relevant listing(s)',
            extra={
                "keyword": keyword,
                "provider": response.provider,
                "response_time": round(response.response_time, 2),
            },
        )
        return kept


def create_refiner(config: Optional[RelevanceConfig]) -> BaseRelevanceRefiner:
    """Pick a refiner implementation from configuration."""
    if config is None or not config.enabled:
        return PassthroughRefiner()

    if config.type == "keyword":
        return KeywordRelevanceRefiner()

    if config.type == "local":
        provider: LLMProvider = LocalLLMClient(config.local or {})
        logger.info(f"Configured local relevance model: {provider.model}")
    elif config.type == "api":
        provider = APILLMClient(config.api or {})
        logger.info(f"Configured API relevance provider: {config.api['provider']}")
    else:
        raise ValueError(f"Unknown relevance refiner type: {config.type}")

    return LLMRelevanceRefiner(provider)
