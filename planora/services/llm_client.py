"""
LLM Client - Unified interface for multiple LLM providers.
Supports OpenAI, Mistral, OpenRouter, and Ollama.
"""
from openai import AsyncOpenAI
from typing import Optional
import asyncio
import json
import logging
import re

from ..config import get_llm_config, settings
from ..exceptions import LLMResponseError, LLMUnavailableError

logger = logging.getLogger(__name__)


class LLMClient:
    """Async LLM client with OpenAI-compatible API."""

    def __init__(self):
        config = get_llm_config()
        self.timeout = config["timeout"]

        # Use mock client if provider is 'mock'
        if settings.llm_provider == "mock":
            from .mock_llm import MockLLMClient
            self._mock = MockLLMClient()
            self.model = self._mock.model
            self.temperature = 0.7
            self.max_tokens = 2000
            self.client = None
        else:
            self._mock = None
            self.client = AsyncOpenAI(
                api_key=config["api_key"],
                base_url=config["base_url"]
            )
            self.model = config["model"]
            self.temperature = config["temperature"]
            self.max_tokens = config["max_tokens"]

    async def chat(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_schema: Optional[dict] = None,
        json_mode: bool = False
    ) -> str:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Override default temperature
            max_tokens: Override default max tokens
            json_schema: Structured-output schema the answer must follow
            json_mode: If True, request JSON response format

        Returns:
            The assistant's response content

        Raises:
            LLMUnavailableError: on transport errors or timeout
        """
        try:
            return await asyncio.wait_for(
                self._complete(messages, temperature, max_tokens, json_schema, json_mode),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise LLMUnavailableError(f"LLM call timed out after {self.timeout}s") from e
        except LLMUnavailableError:
            raise
        except Exception as e:
            raise LLMUnavailableError(f"LLM call failed: {e}") from e

    async def _complete(
        self,
        messages: list[dict],
        temperature: Optional[float],
        max_tokens: Optional[int],
        json_schema: Optional[dict],
        json_mode: bool
    ) -> str:
        # Use mock client if available
        if self._mock is not None:
            return await self._mock.chat(messages, temperature, max_tokens, json_mode or json_schema is not None)

        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }

        # Structured output support (not all providers support this)
        if json_schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": json_schema}
            }
        elif json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
            return response.choices[0].message.content or ""
        except Exception as e:
            # If structured output fails, retry without it
            if "response_format" in kwargs:
                logger.info(f"Retrying without response_format: {e}")
                del kwargs["response_format"]
                response = await self.client.chat.completions.create(**kwargs)
                return response.choices[0].message.content or ""
            raise e

    async def chat_json(
        self,
        messages: list[dict],
        schema: Optional[dict] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> dict:
        """
        Send a chat request and parse JSON response.

        Returns:
            Parsed JSON dict

        Raises:
            LLMUnavailableError: the service could not be reached
            LLMResponseError: the answer was not a JSON object
        """
        if schema is not None:
            messages = _with_schema_instruction(messages, schema)

        response = await self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_schema=schema,
            json_mode=True
        )

        return self._parse_json_response(response)

    def _parse_json_response(self, text: str) -> dict:
        """Parse JSON from LLM response, handling markdown code blocks."""
        text = (text or "").strip()
        # Normalise smart quotes some models emit
        text = re.sub(r'[“”]', '"', text)

        # Try direct parse first
        try:
            return _require_object(json.loads(text))
        except json.JSONDecodeError:
            pass

        # Try extracting from markdown code block
        json_match = re.search(r'```(?:json)?\s*([\s\S]*?)```', text)
        if json_match:
            try:
                return _require_object(json.loads(json_match.group(1).strip()))
            except json.JSONDecodeError:
                pass

        # Try finding JSON object in text
        brace_start = text.find('{')
        brace_end = text.rfind('}')
        if brace_start != -1 and brace_end > brace_start:
            candidate = text[brace_start:brace_end + 1]
            try:
                return _require_object(json.loads(candidate))
            except json.JSONDecodeError:
                pass
            # Trailing commas before closing brackets
            try:
                return _require_object(json.loads(re.sub(r",\s*([\]}])", r"\1", candidate)))
            except json.JSONDecodeError:
                pass

        raise LLMResponseError(f"Failed to parse JSON from LLM response (length: {len(text)})")


def _require_object(value) -> dict:
    if not isinstance(value, dict):
        raise LLMResponseError(f"Expected a JSON object, got {type(value).__name__}")
    return value


def _with_schema_instruction(messages: list[dict], schema: dict) -> list[dict]:
    """Append the output schema to the system prompt (copying, not mutating)."""
    instruction = "\n\nRespond with ONLY a JSON object matching this schema:\n" + json.dumps(schema)
    result = [dict(m) for m in messages]
    for message in result:
        if message["role"] == "system":
            message["content"] += instruction
            return result
    result.insert(0, {"role": "system", "content": instruction.strip()})
    return result


# Global LLM client instance
llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the global LLM client."""
    global llm_client
    if llm_client is None:
        llm_client = LLMClient()
    return llm_client
