"""
Message helpers for chat front ends.
"""

from typing import Any

from rag_agent_core.interfaces import Message, MessageRole, ToolCall


def get_displayable_messages(messages: list[Message]) -> list[Message]:
    """
    Filter a conversation down to what a user should see.

    Keeps human messages and assistant messages with text; drops system
    prompts, tool results and assistant turns that only request tools.
    """
    displayable = []
    for message in messages:
        if message.role == MessageRole.HUMAN:
            displayable.append(message)
        elif message.role == MessageRole.AI and message.content.strip():
            displayable.append(message)
    return displayable


def format_messages_for_display(messages: list[Message]) -> list[dict[str, Any]]:
    return [
        {
            "id": m.id,
            "role": m.role.value,
            "content": m.content,
            "citations": [c.to_dict() for c in m.citations] if m.citations else [],
        }
        for m in get_displayable_messages(messages)
    ]


def message_to_dict(message: Message) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": message.id,
        "role": message.role.value,
        "content": message.content,
    }
    if message.tool_calls:
        data["tool_calls"] = [
            {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
            for tc in message.tool_calls
        ]
    if message.tool_call_id:
        data["tool_call_id"] = message.tool_call_id
    if message.name:
        data["name"] = message.name
    return data


# Roles used by chat APIs that map onto MessageRole
ROLE_ALIASES = {
    "human": MessageRole.HUMAN,
    "user": MessageRole.HUMAN,
    "ai": MessageRole.AI,
    "assistant": MessageRole.AI,
    "system": MessageRole.SYSTEM,
    "tool": MessageRole.TOOL,
}


def message_from_dict(data: dict[str, Any]) -> Message:
    """
    Build a Message from a dict using either our roles or chat API roles.

    Raises:
        ValueError: If the role is not recognised
    """
    role = data.get("role") or data.get("type")
    if role not in ROLE_ALIASES:
        raise ValueError(f"Unknown message role: {role!r}")

    content = data.get("content") or ""
    if not isinstance(content, str):
        # Content blocks: keep the text parts
        content = "".join(
            block.get("text", "") for block in content if isinstance(block, dict)
        )

    message = Message(
        role=ROLE_ALIASES[role],
        content=content,
        tool_calls=[
            ToolCall(
                id=tc.get("id", ""),
                name=tc.get("name", ""),
                arguments=tc.get("arguments") or tc.get("args") or {},
            )
            for tc in data.get("tool_calls") or []
        ],
        tool_call_id=data.get("tool_call_id"),
        name=data.get("name"),
    )
    if data.get("id"):
        message.id = data["id"]
    return message
