"""Accumulation of streamed completion frames."""

import uuid
from dataclasses import dataclass
from typing import Any

from app.services.llm_client import first_delta

REASONING_FLUSH_EVERY = 3
DEFAULT_FLUSH_EVERY = 10


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass
class ToolCallBuffer:
    """A tool call assembled from fragments sharing one ``index``."""

    index: int
    id: str | None = None
    type: str = "function"
    name: str = ""
    arguments: str = ""

    def to_message(self) -> dict[str, Any]:
        if not self.id:
            self.id = f"call_{uuid.uuid4().hex[:24]}"
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }


class StreamAccumulator:
    """Collects reasoning, content and tool-call fragments across a run.

    ``content`` and ``thinking`` span every iteration of the run, while
    ``iteration_content`` and the tool-call buffers are reset by
    ``start_iteration``. ``feed`` returns True when the frame should be
    flushed to the placeholder message.
    """

    def __init__(self, is_reasoning: bool = False):
        self.flush_every = REASONING_FLUSH_EVERY if is_reasoning else DEFAULT_FLUSH_EVERY
        self.content = ""
        self.thinking = ""
        self.iteration_content = ""
        self.frame_count = 0
        self.tool_calls: dict[int, ToolCallBuffer] = {}

    def start_iteration(self) -> None:
        self.iteration_content = ""
        self.frame_count = 0
        self.tool_calls = {}

    def feed(self, frame: dict[str, Any]) -> bool:
        delta = first_delta(frame)
        changed = False

        # Fields of the wrong type are ignored like a malformed frame
        reasoning = _text(delta.get("reasoning"))
        if reasoning:
            self.thinking += reasoning
            changed = True

        content = _text(delta.get("content"))
        if content:
            self.content += content
            self.iteration_content += content
            changed = True

        fragments = delta.get("tool_calls")
        if isinstance(fragments, list):
            for fragment in fragments:
                if isinstance(fragment, dict) and self._merge_tool_fragment(fragment):
                    changed = True

        self.frame_count += 1
        return changed and (
            self.frame_count % self.flush_every == 0
            or " " in content
            or bool(reasoning)
        )

    def _merge_tool_fragment(self, fragment: dict[str, Any]) -> bool:
        index = fragment.get("index", 0)
        if not isinstance(index, int):
            return False
        buffer = self.tool_calls.get(index)
        if buffer is None:
            buffer = ToolCallBuffer(index=index, id=fragment.get("id"), type=fragment.get("type") or "function")
            self.tool_calls[index] = buffer
        elif not buffer.id and fragment.get("id"):
            buffer.id = fragment["id"]

        function = fragment.get("function")
        if isinstance(function, dict):
            buffer.name += _text(function.get("name"))
            buffer.arguments += _text(function.get("arguments"))
        return True

    @property
    def tool_names(self) -> list[str]:
        return [call.name for call in self._ordered_calls() if call.name]

    def _ordered_calls(self) -> list[ToolCallBuffer]:
        return [self.tool_calls[index] for index in sorted(self.tool_calls)]

    def named_tool_calls(self) -> list[dict[str, Any]]:
        """Finalized tool calls in index order; fragments without a name are dropped.

        Arguments stay as raw strings until execution.
        """
        return [call.to_message() for call in self._ordered_calls() if call.name]

    def display_content(self) -> str:
        """Content to show while streaming, with the in-flight tools annotation."""
        names = self.tool_names
        if names:
            return f"{self.content}\n\n🔍 Using tools: {', '.join(names)}..."
        return self.content
