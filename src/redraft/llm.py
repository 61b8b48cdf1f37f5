"""Model invocation: one text transformer per LLM provider. SDKs are lazy-loaded."""

from __future__ import annotations

import logging
import os
from typing import Protocol

from redraft.config import ModelConfig

logger = logging.getLogger(__name__)

PROVIDER_MODELS: dict[str, tuple[str, ...]] = {
    "openai": (
        "gpt-4o-mini",
        "gpt-4.1-nano",
        "gpt-5-nano",
        "gpt-5-mini",
        "gpt-5.2",
        "gpt-5",
        "gpt-4.1",
    ),
    "anthropic": ("claude-haiku-4-5", "claude-sonnet-4-5", "claude-opus-4-5"),
    "google-genai": ("gemini-flash-lite-latest", "gemini-flash-latest"),
}

RECOMMENDED_MODELS: tuple[str, ...] = (
    "gpt-4o-mini",
    "claude-haiku-4-5",
    "gemini-flash-lite-latest",
)

API_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google-genai": "GEMINI_API_KEY",
}

_SYSTEM_PROMPT = "Apply the provided instructions to the provided text"


class TransformError(RuntimeError):
    """The model answered, but not with usable text."""


class TextTransformer(Protocol):
    def transform(self, instructions: str, text: str) -> str: ...


def build_prompt(instructions: str, text: str) -> str:
    """User message: delimited text, delimited instructions, output rule."""
    return (
        "<<<TEXT>>>\n"
        + text
        + "\n<<</TEXT>>>\n"
        + "\n<<<INSTRUCTIONS>>>\n"
        + instructions
        + "\n<<</INSTRUCTIONS>>>\nReturn the transformed text only."
    )


def _resolve_api_key(config: ModelConfig) -> str:
    api_key = config.api_key or os.environ.get(API_KEY_ENV_VARS[config.provider], "")
    if not api_key:
        raise ValueError(
            f"No API key for provider {config.provider!r}: set model.api_key "
            f"or the {API_KEY_ENV_VARS[config.provider]} environment variable"
        )
    return api_key


class _BaseTransformer:
    """Shared logging and error policy. Subclasses implement _invoke()."""

    provider = ""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    @property
    def model_id(self) -> str:
        return self._config.model_id

    def _invoke(self, prompt: str) -> str:
        raise NotImplementedError

    def transform(self, instructions: str, text: str) -> str:
        """Apply instructions to text. Provider errors propagate to the caller."""
        logger.debug("Instructions: %r", instructions)
        logger.debug("Text: %r", text)

        try:
            result = self._invoke(build_prompt(instructions, text))
        except Exception:
            logger.exception("Error invoking %s model %s", self.provider, self._config.model_id)
            raise

        if not result:
            raise TransformError(f"{self.provider} model {self._config.model_id} returned no text")
        return result


class OpenAITransformer(_BaseTransformer):
    provider = "openai"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        from openai import OpenAI

        self._client = OpenAI(api_key=_resolve_api_key(config))

    def _invoke(self, prompt: str) -> str:
        response = self._client.chat.completions.create(
            model=self._config.model_id,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_completion_tokens=self._config.max_tokens,
        )
        return response.choices[0].message.content or ""


class AnthropicTransformer(_BaseTransformer):
    provider = "anthropic"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        import anthropic

        self._client = anthropic.Anthropic(api_key=_resolve_api_key(config))

    def _invoke(self, prompt: str) -> str:
        response = self._client.messages.create(
            model=self._config.model_id,
            max_tokens=self._config.max_tokens,
            system=_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        # Content is a list of blocks; only text blocks carry output
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")


class GeminiTransformer(_BaseTransformer):
    provider = "google-genai"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        from google import genai

        self._client = genai.Client(api_key=_resolve_api_key(config))

    def _invoke(self, prompt: str) -> str:
        from google.genai import types

        response = self._client.models.generate_content(
            model=self._config.model_id,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=_SYSTEM_PROMPT,
                max_output_tokens=self._config.max_tokens,
            ),
        )
        return response.text or ""


_TRANSFORMERS: dict[str, type[_BaseTransformer]] = {
    "openai": OpenAITransformer,
    "anthropic": AnthropicTransformer,
    "google-genai": GeminiTransformer,
}


def create_transformer(config: ModelConfig) -> TextTransformer:
    """Instantiate the transformer for the configured provider."""
    cls = _TRANSFORMERS.get(config.provider)
    if cls is None:
        raise ValueError(f"Unsupported provider: {config.provider}")
    if config.model_id not in PROVIDER_MODELS[config.provider]:
        logger.warning("Model %s is not in the known %s models, trying anyway", config.model_id, config.provider)
    logger.info("Using %s model %s", config.provider, config.model_id)
    return cls(config)
