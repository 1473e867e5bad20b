"""Transcript data model.

Messages are immutable values: every context stage builds new messages
(via ``dataclasses.replace``) instead of editing the ones it was given,
so a caller's transcript is never changed behind its back.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool call produced by an assistant message."""

    id: str
    name: str
    input: dict = field(default_factory=dict)

    @property
    def input_json(self) -> str:
        """Compact JSON encoding of the arguments, as sent to the model."""
        return json.dumps(
            self.input, separators=(",", ":"), ensure_ascii=False, default=str,
        )


@dataclass(frozen=True)
class ToolResultBlock:
    """The output of a tool call, carried by a user or tool message."""

    tool_use_id: str
    content: str = ""
    is_error: bool = False


@dataclass(frozen=True)
class Message:
    """One transcript entry."""

    role: Role
    content: str = ""
    tool_use: tuple[ToolUseBlock, ...] = ()
    tool_results: tuple[ToolResultBlock, ...] = ()
    reasoning: str = ""

    def __post_init__(self) -> None:
        # Accept lists and plain strings from callers; store tuples and Role.
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "tool_use", tuple(self.tool_use))
        object.__setattr__(self, "tool_results", tuple(self.tool_results))

    @property
    def has_tool_use(self) -> bool:
        return self.role == Role.ASSISTANT and bool(self.tool_use)

    @property
    def has_tool_results(self) -> bool:
        return self.role in (Role.USER, Role.TOOL) and bool(self.tool_results)

    def tool_use_ids(self) -> set[str]:
        if not self.has_tool_use:
            return set()
        return {tu.id for tu in self.tool_use}

    def result_ids(self) -> set[str]:
        if not self.has_tool_results:
            return set()
        return {tr.tool_use_id for tr in self.tool_results}

    def with_tool_results(self, results: Iterable[ToolResultBlock]) -> Message:
        return replace(self, tool_results=tuple(results))

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"role": str(self.role), "content": self.content}
        if self.reasoning:
            data["reasoning_content"] = self.reasoning
        if self.tool_use:
            data["tool_use"] = [
                {"id": tu.id, "name": tu.name, "input": tu.input}
                for tu in self.tool_use
            ]
        if self.tool_results:
            results = []
            for tr in self.tool_results:
                item: dict[str, Any] = {
                    "tool_use_id": tr.tool_use_id,
                    "content": tr.content,
                }
                if tr.is_error:
                    item["is_error"] = True
                results.append(item)
            data["tool_results"] = results
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        tool_use = tuple(
            ToolUseBlock(
                id=str(tu.get("id", "")),
                name=str(tu.get("name", "")),
                input=_parse_input(tu.get("input")),
            )
            for tu in data.get("tool_use") or []
        )
        tool_results = tuple(
            ToolResultBlock(
                tool_use_id=str(tr.get("tool_use_id", "")),
                content=str(tr.get("content") or ""),
                is_error=bool(tr.get("is_error", False)),
            )
            for tr in data.get("tool_results") or []
        )
        return cls(
            role=Role(data.get("role", "user")),
            content=str(data.get("content") or ""),
            tool_use=tool_use,
            tool_results=tool_results,
            reasoning=str(data.get("reasoning_content") or ""),
        )


def _parse_input(value: object) -> dict:
    """Tool input arrives as an object or a JSON-encoded string."""
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            logger.debug("Unparseable tool input kept raw: %s", value[:200])
            return {"raw": value}
        if isinstance(parsed, dict):
            return parsed
        return {"raw": parsed}
    return {"raw": value}


def canonical_arguments(arguments: dict) -> str:
    """Order-independent JSON encoding of tool arguments."""
    return json.dumps(
        arguments, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str,
    )


def orphaned_tool_results(messages: Sequence[Message]) -> list[str]:
    """Return tool-use IDs of results with no earlier matching tool call."""
    seen: set[str] = set()
    orphans: list[str] = []
    for msg in messages:
        for tr in msg.tool_results if msg.has_tool_results else ():
            if tr.tool_use_id not in seen:
                orphans.append(tr.tool_use_id)
        seen |= msg.tool_use_ids()
    return orphans


def drop_orphaned_results(
    messages: Sequence[Message],
) -> tuple[list[Message], list[str]]:
    """Strip result blocks whose tool call is not earlier in the transcript.

    A message left with neither content nor blocks is dropped. The first
    (pinned) message is passed through untouched. Returns the cleaned
    transcript and the stripped tool-use IDs.
    """
    if not messages:
        return [], []

    kept: list[Message] = [messages[0]]
    stripped: list[str] = []
    seen = messages[0].tool_use_ids()

    for msg in messages[1:]:
        if msg.has_tool_results:
            valid = [tr for tr in msg.tool_results if tr.tool_use_id in seen]
            if len(valid) < len(msg.tool_results):
                for tr in msg.tool_results:
                    if tr.tool_use_id not in seen:
                        stripped.append(tr.tool_use_id)
                        logger.warning(
                            "Removing orphaned tool result for tool call %s",
                            tr.tool_use_id,
                        )
                msg = msg.with_tool_results(valid)
                if not valid and not msg.content and not msg.tool_use:
                    continue
        kept.append(msg)
        seen |= msg.tool_use_ids()

    return kept, stripped
