"""Convert conversation turns and tool rounds to Anthropic API message format."""

from __future__ import annotations

import json
from typing import Any

from handoff_bot.core.models import ToolCall, ToolResult, Turn


def build_messages(history: list[Turn], message_text: str, max_turns: int = 10) -> list[dict[str, Any]]:
    """Prior turns (capped to the most recent *max_turns*) followed by the new user turn.

    Consecutive turns with the same role are merged, since the API expects
    user and assistant turns to alternate.
    """
    recent = history[-max_turns:] if max_turns > 0 else []
    messages: list[dict[str, Any]] = []
    for turn in [*recent, Turn(role="user", content=message_text)]:
        if not turn.content:
            continue
        role = "assistant" if turn.role == "assistant" else "user"
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n" + turn.content
        else:
            messages.append({"role": role, "content": turn.content})

    # The conversation must open with a user turn
    while messages and messages[0]["role"] != "user":
        messages.pop(0)
    return messages


def append_tool_round(
    messages: list[dict[str, Any]],
    assistant_text: str,
    tool_calls: list[ToolCall],
    results: list[ToolResult],
) -> list[dict[str, Any]]:
    """Return *messages* extended with the assistant tool_use turn and the tool results."""
    assistant_content: list[dict[str, Any]] = []
    if assistant_text:
        assistant_content.append({"type": "text", "text": assistant_text})
    for call in tool_calls:
        try:
            tool_input = json.loads(call.arguments)
        except (json.JSONDecodeError, TypeError):
            tool_input = {}
        assistant_content.append(
            {
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": tool_input if isinstance(tool_input, dict) else {},
            }
        )

    result_blocks = [
        {
            "type": "tool_result",
            "tool_use_id": result.tool_call_id,
            "content": json.dumps(result.result, ensure_ascii=False, default=str),
        }
        for result in results
    ]
    return [
        *messages,
        {"role": "assistant", "content": assistant_content},
        {"role": "user", "content": result_blocks},
    ]
