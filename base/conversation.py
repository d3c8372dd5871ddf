"""
Conversation accessor consumed by content recovery. Read-only: nothing here creates or edits messages.
"""

from typing import Any, Iterable, List, Optional, Protocol

from base.base import ConversationMessage


class ConversationAccessor(Protocol):
    def find_message_with_marker(self, kind: str) -> Optional[ConversationMessage]: ...

    def previous_assistant_message(self) -> Optional[ConversationMessage]: ...

    def latest_assistant_message(self) -> Optional[ConversationMessage]: ...


class InMemoryConversation:
    """
    Accessor over an ordered message list (oldest first).

    previous_assistant_message is the last assistant message before the latest user message,
    i.e. the reply the user is reacting to. latest_assistant_message is the last assistant
    message overall.
    """

    def __init__(self, messages: Iterable[ConversationMessage] = ()):
        self._messages: List[ConversationMessage] = list(messages)

    @classmethod
    def from_payload(cls, payload: Iterable[Any]) -> "InMemoryConversation":
        """Accept dicts, pydantic models or ConversationMessage items; skips entries without a role."""
        messages = []
        for item in payload or []:
            if isinstance(item, ConversationMessage):
                messages.append(item)
                continue
            if hasattr(item, "model_dump"):
                item = item.model_dump()
            if not isinstance(item, dict) or not item.get("role"):
                continue
            markers = item.get("markers") or []
            if isinstance(markers, str):
                markers = [markers]
            messages.append(ConversationMessage(
                role=str(item["role"]),
                content=str(item.get("content") or ""),
                markers=[str(m) for m in markers],
            ))
        return cls(messages)

    def __len__(self) -> int:
        return len(self._messages)

    def find_message_with_marker(self, kind: str) -> Optional[ConversationMessage]:
        for msg in reversed(self._messages):
            if kind in msg.markers:
                return msg
        return None

    def previous_assistant_message(self) -> Optional[ConversationMessage]:
        last_user = None
        for i in range(len(self._messages) - 1, -1, -1):
            if self._messages[i].role == "user":
                last_user = i
                break
        if last_user is None:
            return None
        for msg in reversed(self._messages[:last_user]):
            if msg.role == "assistant":
                return msg
        return None

    def latest_assistant_message(self) -> Optional[ConversationMessage]:
        for msg in reversed(self._messages):
            if msg.role == "assistant":
                return msg
        return None

