"""
Contract between the marketplace core and a generative content provider.

Every method either returns a usable result or raises `ProviderError`;
empty or malformed model output counts as a failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


@dataclass
class ToolCall:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class ToolResult:
    call: ToolCall
    response: Dict[str, Any]


@dataclass
class ProviderTurn:
    """One model reply: tool invocation requests, or free text when there are none."""
    tool_calls: List[ToolCall] = field(default_factory=list)
    text: str = ""


class ToolSession:
    """A multi-turn tool-calling conversation."""

    def send_message(self, text: str) -> ProviderTurn:
        raise NotImplementedError

    def send_tool_results(self, results: Sequence[ToolResult]) -> ProviderTurn:
        raise NotImplementedError


class ContentProvider:
    def generate_structured(self, prompt: str, schema: Dict[str, Any], use_search: bool = False) -> Any:
        """Single-shot generation returning JSON that conforms to `schema`."""
        raise NotImplementedError

    def generate_text(self, prompt: str, long_form: bool = False) -> str:
        raise NotImplementedError

    def generate_image(self, prompt: str, size: str = "1K") -> str:
        """Returns a data URL."""
        raise NotImplementedError

    def generate_video(self, prompt: str) -> str:
        """Returns a URI for the rendered clip."""
        raise NotImplementedError

    def start_tool_session(self, system_prompt: str, tools: List[Dict[str, Any]]) -> ToolSession:
        raise NotImplementedError

    def chat(self, history: List[Dict[str, Any]], message: str) -> str:
        raise NotImplementedError
