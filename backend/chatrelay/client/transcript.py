"""
Client-side chat state: the displayed transcript, the current
conversation id and the conversation list.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


USER = "user"
ASSISTANT = "assistant"


@dataclass
class TranscriptMessage:
    role: str
    content: str


@dataclass
class Transcript:
    """
    Ordered list of displayed messages.

    All changes go through `append` and `replace_last` so updates arrive
    in the order the stream produced them.
    """

    messages: List[TranscriptMessage] = field(default_factory=list)
    conversation_id: Optional[str] = None
    conversations: List[Dict[str, Any]] = field(default_factory=list)

    def append(self, role: str, content: str) -> TranscriptMessage:
        message = TranscriptMessage(role=role, content=content)
        self.messages.append(message)
        return message

    def replace_last(self, content: str) -> None:
        """Overwrite the content of the newest message."""
        if not self.messages:
            raise IndexError("transcript is empty")
        self.messages[-1].content = content

    @property
    def last(self) -> Optional[TranscriptMessage]:
        return self.messages[-1] if self.messages else None

    def load(self, conversation_id: str, messages: List[Dict[str, Any]]) -> None:
        """Replace the transcript with stored messages of a conversation."""
        self.conversation_id = conversation_id
        self.messages = [TranscriptMessage(role=m["role"], content=m["content"]) for m in messages]

    def reset(self) -> None:
        """Start a new chat: no conversation, empty transcript."""
        self.conversation_id = None
        self.messages = []
