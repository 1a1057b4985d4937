"""
Text-completion oracles used for transaction categorization.

An oracle takes one prompt and returns the model's whole message content as
text. It owns no retry loop: a failed or timed-out call raises
OracleUnavailable and the caller decides whether to try again.

Environment Variables:
- CATEGORIZATION_LLM_PROVIDER: "openai" (default) or "anthropic"
- CATEGORIZATION_LLM_MODEL: model name (provider-specific default)
- CATEGORIZATION_LLM_TEMPERATURE: sampling temperature (default: 0.1)
- CATEGORIZATION_LLM_MAX_TOKENS: max tokens for the response (default: 1024)
- CATEGORIZATION_LLM_TIMEOUT: request timeout in seconds (default: 30)
- OPENAI_API_KEY / ANTHROPIC_API_KEY: provider credentials
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from openai import OpenAI, OpenAIError

from homeledger.errors import OracleUnavailable

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a financial transaction categorization expert. "
    "Respond only with the JSON array requested, nothing else."
)


class ClassificationOracle(ABC):
    """Pluggable text-completion service."""

    name = "oracle"

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """
        Send one prompt and return the response text.

        Raises:
            OracleUnavailable: the call failed, timed out, or returned no text
        """
        pass


def _diagnose(error_msg: str) -> Optional[str]:
    error_lower = error_msg.lower()
    if "401" in error_msg or "authentication" in error_lower or "api key" in error_lower:
        return "Authentication error - API key may be invalid, expired, or missing"
    if "429" in error_msg or "rate limit" in error_lower:
        return "Rate limit exceeded - API quota may be exceeded, wait and retry"
    if "timeout" in error_lower or "timed out" in error_lower:
        return "Request timeout"
    if "network" in error_lower or "connection" in error_lower or "dns" in error_lower:
        return "Network connectivity issue"
    if "context length" in error_lower:
        return "Context length exceeded - batch too large"
    return None


def _unavailable(provider: str, exc: Exception) -> OracleUnavailable:
    error_type = type(exc).__name__
    error_msg = str(exc)
    logger.error(f"[{provider.upper()}] API call failed with error: {error_type}: {error_msg}")
    diagnosis = _diagnose(f"{error_type} {error_msg}")
    if diagnosis:
        logger.error(f"[{provider.upper()}] DIAGNOSIS: {diagnosis}")
    return OracleUnavailable(f"Classification call to {provider} failed: {error_type}: {error_msg}")


class OpenAIOracle(ClassificationOracle):
    """OpenAI chat completions."""

    name = "openai"

    LLM_MODEL = os.getenv("CATEGORIZATION_LLM_MODEL", "gpt-4o-mini")
    LLM_TEMPERATURE = float(os.getenv("CATEGORIZATION_LLM_TEMPERATURE", "0.1"))
    LLM_MAX_TOKENS = int(os.getenv("CATEGORIZATION_LLM_MAX_TOKENS", "1024"))
    LLM_TIMEOUT = float(os.getenv("CATEGORIZATION_LLM_TIMEOUT", "30"))

    def __init__(self, api_key: Optional[str] = None, client=None):
        """
        Args:
            api_key: OpenAI API key (default OPENAI_API_KEY)
            client: Pre-built OpenAI client, mainly for tests
        """
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise OracleUnavailable("OPENAI_API_KEY not set, LLM categorization is unavailable")
            # Retries are the caller's decision.
            self._client = OpenAI(api_key=self._api_key, timeout=self.LLM_TIMEOUT, max_retries=0)
            logger.info("OpenAI client initialized successfully")
        return self._client

    def complete(self, prompt: str) -> str:
        client = self._get_client()
        logger.info(f"[OPENAI] Sending request (model: {self.LLM_MODEL})...")
        try:
            response = client.chat.completions.create(
                model=self.LLM_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.LLM_TEMPERATURE,
                max_tokens=self.LLM_MAX_TOKENS,
                timeout=self.LLM_TIMEOUT,
            )
        except OpenAIError as e:
            raise _unavailable(self.name, e) from e

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                f"[OPENAI] Tokens used - input: {usage.prompt_tokens}, "
                f"output: {usage.completion_tokens}, total: {usage.total_tokens}"
            )

        if not response.choices or response.choices[0].message.content is None:
            raise OracleUnavailable("OpenAI returned no message content")
        return response.choices[0].message.content.strip()


class AnthropicOracle(ClassificationOracle):
    """Anthropic Messages API over plain HTTP."""

    name = "anthropic"

    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    LLM_MODEL = os.getenv("CATEGORIZATION_LLM_MODEL", "claude-haiku-4-5-20251001")
    LLM_MAX_TOKENS = int(os.getenv("CATEGORIZATION_LLM_MAX_TOKENS", "1024"))
    LLM_TIMEOUT = float(os.getenv("CATEGORIZATION_LLM_TIMEOUT", "30"))

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.BaseTransport] = None):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self._transport = transport

    def complete(self, prompt: str) -> str:
        if not self._api_key:
            raise OracleUnavailable("ANTHROPIC_API_KEY not set, LLM categorization is unavailable")

        logger.info(f"[ANTHROPIC] Sending request (model: {self.LLM_MODEL})...")
        try:
            with httpx.Client(timeout=self.LLM_TIMEOUT, transport=self._transport) as client:
                response = client.post(
                    self.API_URL,
                    headers={
                        "x-api-key": self._api_key,
                        "anthropic-version": self.API_VERSION,
                        "content-type": "application/json",
                    },
                    json={
                        "model": self.LLM_MODEL,
                        "max_tokens": self.LLM_MAX_TOKENS,
                        "system": SYSTEM_PROMPT,
                        "messages": [{"role": "user", "content": prompt}],
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise _unavailable(self.name, e) from e

        if not isinstance(payload, dict):
            raise OracleUnavailable("Anthropic returned an unexpected payload")
        blocks = payload.get("content") or []
        text = "".join(b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text")
        if not text.strip():
            raise OracleUnavailable("Anthropic returned no text content")
        return text.strip()


def get_default_oracle() -> ClassificationOracle:
    """Build the oracle selected by CATEGORIZATION_LLM_PROVIDER."""
    provider = os.getenv("CATEGORIZATION_LLM_PROVIDER", "openai").strip().lower()
    if provider == "openai":
        return OpenAIOracle()
    if provider == "anthropic":
        return AnthropicOracle()
    raise OracleUnavailable(f"Unknown CATEGORIZATION_LLM_PROVIDER: {provider!r}")
