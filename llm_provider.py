import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from errors import CompletionError
from settings import settings

logger = logging.getLogger("procedo.llm")


@dataclass
class CompletionResponse:
    """What came back from one completion call: free text, a tool call, or both."""
    text: str = ""
    tool_name: Optional[str] = None
    tool_arguments: Optional[dict] = None
    tool_arguments_raw: Optional[str] = None


class LLMProvider(ABC):
    supports_tools: bool = False

    @abstractmethod
    def complete(
        self,
        *,
        system: str,
        user: str,
        max_tokens: int = 8000,
        tools: Optional[list] = None,
    ) -> CompletionResponse: ...


def _parse_openai_message(result_json: dict) -> CompletionResponse:
    message = (result_json.get("choices") or [{}])[0].get("message") or {}
    out = CompletionResponse(text=message.get("content") or "")
    calls = message.get("tool_calls") or []
    if calls:
        fn = calls[0].get("function") or {}
        out.tool_name = fn.get("name")
        args = fn.get("arguments")
        if isinstance(args, dict):
            out.tool_arguments = args
        elif isinstance(args, str):
            out.tool_arguments_raw = args
            try:
                decoded = json.loads(args)
                out.tool_arguments = decoded if isinstance(decoded, dict) else None
            except (json.JSONDecodeError, ValueError):
                out.tool_arguments = None
    return out


class OllamaProvider(LLMProvider):
    """Ollama via its OpenAI-compatible API, falling back to the legacy generate API."""

    supports_tools = True

    def __init__(self, model_id="llama3.1:8b-instruct-q4_K_M", url="http://localhost:11434",
                 timeout: int = None, temperature: float = None):
        self.model_id = model_id
        self.url = url.rstrip("/")
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature

    def _headers(self) -> dict:
        return {"Content-Type": "application/json"}

    def _chat_payload(self, system: str, user: str, max_tokens: int, tools: Optional[list]) -> dict:
        payload = {
            "model": self.model_id,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "required"
        return payload

    def complete(self, *, system, user, max_tokens=8000, tools=None) -> CompletionResponse:
        endpoints = [
            ("/v1/chat/completions", "openai"),
            ("/api/generate", "legacy"),
        ]

        last_error = None
        for endpoint, api_type in endpoints:
            url = f"{self.url}{endpoint}"
            try:
                if api_type == "openai":
                    payload = self._chat_payload(system, user, max_tokens, tools)
                    response = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
                    response.raise_for_status()
                    logger.debug("complete() succeeded with %s API", api_type)
                    return _parse_openai_message(response.json())

                # Legacy API has no tool calling; free text only
                payload = {
                    "model": self.model_id,
                    "system": system,
                    "prompt": user,
                    "stream": False,
                    "options": {"temperature": self.temperature, "num_predict": max_tokens},
                }
                response = requests.post(url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                logger.debug("complete() succeeded with %s API", api_type)
                return CompletionResponse(text=response.json().get("response", ""))

            except requests.exceptions.HTTPError as e:
                if e.response is not None and e.response.status_code == 404:
                    logger.debug("%s API not available (404)", api_type)
                    last_error = e
                    continue
                raise CompletionError(f"LLM request failed: {e}") from e
            except requests.exceptions.RequestException as e:
                raise CompletionError(f"LLM request failed: {e}") from e

        raise CompletionError(f"All LLM endpoints failed. Last error: {last_error}")


class OpenAICompatibleProvider(OllamaProvider):
    """Any hosted /v1/chat/completions API that takes a bearer key."""

    def __init__(self, model_id: str, url: str, api_key: Optional[str] = None, **kwargs):
        super().__init__(model_id=model_id, url=url, **kwargs)
        self.api_key = api_key

    def _headers(self) -> dict:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def complete(self, *, system, user, max_tokens=8000, tools=None) -> CompletionResponse:
        url = f"{self.url}/chat/completions"
        payload = self._chat_payload(system, user, max_tokens, tools)
        try:
            response = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise CompletionError(f"LLM request failed: {e}") from e
        return _parse_openai_message(response.json())
