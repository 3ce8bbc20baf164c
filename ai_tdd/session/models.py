"""Core data structures for TDD session management."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ai_tdd.providers.llm.base import Message
from ai_tdd.testing.frameworks import LanguageProfile
from ai_tdd.testing.results import TestResult

if TYPE_CHECKING:
    from .context_service import ConversationContext


class MessageKind(str, Enum):
    """Semantic tag used for retention decisions, independent of the chat role."""

    SYSTEM_INSTRUCTIONS = "system-instructions"
    TEST_FILE_SNAPSHOT = "test-file-snapshot"
    REQUIREMENTS_EXTRACT = "requirements-extract"
    IMPLEMENTATION_SNAPSHOT = "implementation-snapshot"
    TEST_RESULT = "test-result"


RETAINED_KINDS = (
    MessageKind.TEST_FILE_SNAPSHOT,
    MessageKind.REQUIREMENTS_EXTRACT,
    MessageKind.IMPLEMENTATION_SNAPSHOT,
    MessageKind.TEST_RESULT,
)


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    kind: MessageKind
    content: str

    def to_llm(self) -> Message:
        return Message(role=self.role, content=self.content)


class SessionState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    GENERATING = "generating"
    TESTING = "testing"
    PASSED = "passed"
    AWAITING_NEXT_TRIGGER = "awaiting_next_trigger"
    STOPPED = "stopped"


def new_session_id(now: Optional[datetime] = None) -> str:
    """Timestamp-derived identifier, also used as the persistence key."""
    moment = now or datetime.now()
    return f"session_{moment.strftime('%Y%m%d_%H%M%S_%f')}"


@dataclass
class Session:
    """One TDD run bound to a single test/implementation file pair."""

    id: str
    test_file: Path
    implementation_file: Path
    profile: LanguageProfile
    context: "ConversationContext"
    max_iterations: int
    iteration: int = 0
    paused: bool = False
    state: SessionState = SessionState.IDLE
    results: List[TestResult] = field(default_factory=list)

    @property
    def last_result(self) -> Optional[TestResult]:
        return self.results[-1] if self.results else None

    @property
    def closed(self) -> bool:
        return self.state is SessionState.STOPPED


class PersistedMessage(BaseModel):
    role: str
    kind: MessageKind
    content: str


class ConversationSnapshot(BaseModel):
    """Full untruncated conversation written at the end of a run."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    language: str
    test_runner: str = Field(alias="testRunner")
    test_file: Optional[str] = Field(default=None, alias="testFile")
    implementation_file: Optional[str] = Field(default=None, alias="implementationFile")
    persisted_at: str = Field(alias="persistedAt")
    messages: List[PersistedMessage] = Field(default_factory=list)


__all__ = [
    "ConversationMessage",
    "ConversationSnapshot",
    "MessageKind",
    "PersistedMessage",
    "RETAINED_KINDS",
    "Session",
    "SessionState",
    "new_session_id",
]
