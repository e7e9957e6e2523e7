# completion_invoker.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from errors import CompletionError
from llm_provider import CompletionResponse, LLMProvider
from report_schemas import REPORT_TOOL, tool_call_to_payload, tool_definitions
from settings import settings

logger = logging.getLogger("procedo.invoker")


@dataclass(frozen=True)
class RawModelOutput:
    """Either a decoded tool call (``structured``) or accumulated free text (``text``)."""
    structured: Optional[dict] = None
    text: str = ""
    tool_name: Optional[str] = None

    @property
    def is_structured(self) -> bool:
        return self.structured is not None

    @classmethod
    def from_text(cls, text: str) -> "RawModelOutput":
        return cls(text=text or "")

    @classmethod
    def from_structured(cls, data: dict, tool_name: str = REPORT_TOOL) -> "RawModelOutput":
        return cls(structured=data, tool_name=tool_name)


class CompletionInvoker:
    def __init__(self, provider: LLMProvider, use_tool_calls: bool = None, max_tokens: int = None):
        self.provider = provider
        self.use_tool_calls = settings.LLM_USE_TOOL_CALLS if use_tool_calls is None else use_tool_calls
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    @property
    def schema_constrained(self) -> bool:
        return bool(self.use_tool_calls and getattr(self.provider, "supports_tools", False))

    async def invoke(self, bundle) -> RawModelOutput:
        """
        Run one completion for a PromptBundle.

        Schema-constrained (tool call) when the provider supports it, free text otherwise.
        A tool-call request that comes back without a tool call degrades to its text content.

        Raises:
            CompletionError: provider failure or an empty response
        """
        tools = None
        if self.schema_constrained:
            tools = tool_definitions(bundle.contract, allow_wrong_jurisdiction=bundle.allow_wrong_jurisdiction)

        try:
            response: CompletionResponse = await asyncio.to_thread(
                self.provider.complete,
                system=bundle.system_prompt,
                user=bundle.user_prompt,
                max_tokens=self.max_tokens,
                tools=tools,
            )
        except CompletionError:
            raise
        except Exception as e:
            raise CompletionError(f"LLM call failed: {e}") from e

        if tools and response.tool_name:
            if response.tool_arguments is not None:
                logger.debug("tool call %s for %s", response.tool_name, bundle.contract.value)
                return RawModelOutput.from_structured(
                    tool_call_to_payload(response.tool_name, response.tool_arguments),
                    tool_name=response.tool_name,
                )
            # Arguments were not decodable JSON; hand them to the text repair path
            return RawModelOutput.from_text(response.tool_arguments_raw or response.text)

        if not (response.text or "").strip():
            raise CompletionError("LLM returned an empty response")
        if tools:
            logger.info("No tool call in response for %s; using free-text output", bundle.contract.value)
        return RawModelOutput.from_text(response.text)
