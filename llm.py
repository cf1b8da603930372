import logging
from typing import Optional, Protocol

import httpx
import openai
from openai import AsyncOpenAI

from config import AppConfig, ModelConfig, ModelType
from errors import GenerationError
from utils import count_tokens

logger = logging.getLogger(__name__)


class Responder(Protocol):
    """Anything that turns a fully assembled prompt into a reply."""

    async def generate(self, prompt: str) -> str: ...


def _token_count(model: ModelConfig, text: str) -> str:
    """Count tokens for a log line; a tokenizer failure never affects generation."""
    try:
        return str(count_tokens(model, text))
    except Exception as e:  # noqa: BLE001
        logger.warning(f"⚠️  Token count unavailable for {model.name}: {e!r}")
        return "unknown"


def _log_request(model: ModelConfig, prompt: str):
    """
    Log the prompt being sent to the model for debugging and traceability.

    Args:
        model: The model configuration being used.
        prompt: The assembled prompt.
    """
    logger.debug(f"📝 Prompt sent to model '{model.name}':\n{prompt}")
    logger.info(f"📏 Tokens in request: {_token_count(model, prompt)}")


def _log_response(model: ModelConfig, answer: str):
    """
    Log the response returned from the model.

    Args:
        model: The model configuration used.
        answer: The full text response.
    """
    logger.debug(f"🧠 Response from {model.name}:\n{answer}")
    logger.info(f"📏 Tokens in response: {_token_count(model, answer)}")


class LLMResponder:
    """
    Single-shot completion client for the configured model.

    The model holds no conversation state of its own; the whole history is
    carried inline in the prompt, which is sent as one user message.

    Args:
        config: Global application configuration.
        http_client: Optional client used for vLLM requests. When omitted a
            client is opened per request.
    """

    def __init__(
        self, config: AppConfig, http_client: Optional[httpx.AsyncClient] = None
    ):
        self.model = config.model
        self.max_response_tokens = config.max_response_tokens
        self._http_client = http_client
        self._openai_client = None
        if self.model.model_type == ModelType.OPENAI:
            self._openai_client = AsyncOpenAI(api_key=config.openai_api_key)

    async def generate(self, prompt: str) -> str:
        """
        Send the prompt to the model and return the generated text.

        Raises:
            GenerationError: If the request fails or the reply is malformed.
            ValueError: If the model type is unsupported.
        """
        _log_request(self.model, prompt)
        messages = [{"role": "user", "content": prompt}]

        if self.model.model_type == ModelType.VLLM:
            result = await self._vllm_completion(messages)
        elif self.model.model_type == ModelType.OPENAI:
            result = await self._openai_completion(messages)
        else:
            raise ValueError(f"Unsupported model type: {self.model.model_type}")

        _log_response(self.model, result)
        return result

    async def _vllm_completion(self, messages: list[dict]) -> str:
        payload = {
            "model": self.model.name,
            "messages": messages,
            "max_tokens": self.max_response_tokens,
            "temperature": 0.4,
            "top_p": 0.9,
        }
        url = f"{self.model.url}/v1/chat/completions"
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(url, json=payload, timeout=120)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(url, json=payload, timeout=120)
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except httpx.HTTPError as e:
            raise GenerationError(f"Request to {self.model.name} failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GenerationError(
                f"Malformed response from {self.model.name}: {e}"
            ) from e

        if content is None:
            raise GenerationError(f"Empty response from {self.model.name}")
        return content

    async def _openai_completion(self, messages: list[dict]) -> str:
        try:
            response = await self._openai_client.chat.completions.create(
                model=self.model.name,
                messages=messages,
                max_completion_tokens=self.max_response_tokens,
                temperature=0.4,
                top_p=0.9,
            )
        except openai.OpenAIError as e:
            raise GenerationError(f"Request to {self.model.name} failed: {e}") from e

        if not response.choices or response.choices[0].message.content is None:
            raise GenerationError(f"Empty response from {self.model.name}")
        return response.choices[0].message.content
