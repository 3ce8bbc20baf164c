"""Conversation history for one TDD session and its bounded prompt view."""
from __future__ import annotations

from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque, Dict, List, Optional

from ai_tdd.core.errors import PersistenceError
from ai_tdd.core.utils.constants import CONVERSATION_FILE_PREFIX, DEFAULT_RETENTION_WINDOW
from ai_tdd.core.utils.logger import get_logger
from ai_tdd.providers.llm.base import Message
from ai_tdd.testing.frameworks import LanguageProfile
from ai_tdd.testing.history import write_json_atomic
from ai_tdd.testing.results import TestResult

from . import prompt_builder
from .models import (
    RETAINED_KINDS,
    ConversationMessage,
    ConversationSnapshot,
    MessageKind,
    PersistedMessage,
)
from .requirements import extract_requirements, strip_requirements

LOGGER = get_logger(__name__)


class ConversationContext:
    """Append-only message log with a fixed per-kind retention window.

    The first message is always the system instructions and is never evicted.
    Every other kind keeps the indices of its latest ``retention`` messages in
    a bounded deque, so the prompt view is assembled without re-filtering the
    whole log.
    """

    def __init__(
        self,
        session_id: str,
        profile: LanguageProfile,
        *,
        retention: int = DEFAULT_RETENTION_WINDOW,
        instructions: Optional[str] = None,
    ) -> None:
        if retention < 1:
            raise ValueError("retention window must be at least 1")
        self.session_id = session_id
        self.profile = profile
        self.retention = retention
        self._log: List[ConversationMessage] = []
        self._recent: Dict[MessageKind, Deque[int]] = {
            kind: deque(maxlen=retention) for kind in RETAINED_KINDS
        }
        self._counts: Dict[MessageKind, int] = {kind: 0 for kind in MessageKind}
        self._append(
            "system",
            MessageKind.SYSTEM_INSTRUCTIONS,
            prompt_builder.build_system_prompt(profile, instructions),
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_test_file(self, content: str) -> List[str]:
        """Record the current test file; returns the extracted requirements."""
        requirements = extract_requirements(content)
        clean_body = strip_requirements(content)
        first = self._counts[MessageKind.TEST_FILE_SNAPSHOT] == 0

        if requirements:
            self._append(
                "user",
                MessageKind.REQUIREMENTS_EXTRACT,
                prompt_builder.format_requirements(requirements),
            )
        self._append(
            "user",
            MessageKind.TEST_FILE_SNAPSHOT,
            prompt_builder.format_test_file(clean_body, first=first),
        )
        LOGGER.debug("Recorded test file (%d requirements, first=%s)", len(requirements), first)
        return requirements

    def record_implementation(self, code: str) -> None:
        self._append(
            "assistant",
            MessageKind.IMPLEMENTATION_SNAPSHOT,
            prompt_builder.format_implementation(code),
        )

    def record_test_result(self, result: TestResult) -> None:
        self._append("user", MessageKind.TEST_RESULT, prompt_builder.format_test_result(result))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def messages(self) -> List[ConversationMessage]:
        """The full, untruncated log."""
        return list(self._log)

    @property
    def system_message(self) -> ConversationMessage:
        return self._log[0]

    def count(self, kind: MessageKind) -> int:
        return self._counts[kind]

    def build_prompt_view(self) -> List[ConversationMessage]:
        """System message plus the latest ``retention`` messages of each other kind."""
        retained = sorted(index for indices in self._recent.values() for index in indices)
        view = [self._log[0], *(self._log[index] for index in retained)]
        LOGGER.debug(
            "Conversation length: %d, prompt view: %d messages, total characters: %d",
            len(self._log),
            len(view),
            sum(len(message.content) for message in view),
        )
        return view

    def to_llm_messages(self) -> List[Message]:
        return [message.to_llm() for message in self.build_prompt_view()]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(
        self,
        *,
        test_file: Optional[Path] = None,
        implementation_file: Optional[Path] = None,
    ) -> ConversationSnapshot:
        return ConversationSnapshot(
            session_id=self.session_id,
            language=self.profile.language,
            test_runner=self.profile.test_runner,
            test_file=str(test_file) if test_file else None,
            implementation_file=str(implementation_file) if implementation_file else None,
            persisted_at=datetime.now().isoformat(),
            messages=[
                PersistedMessage(role=message.role, kind=message.kind, content=message.content)
                for message in self._log
            ],
        )

    def persist(
        self,
        directory: Path,
        *,
        test_file: Optional[Path] = None,
        implementation_file: Optional[Path] = None,
    ) -> Path:
        """Write the full log to ``<directory>/conversation-<session id>.json``."""
        target = Path(directory) / f"{CONVERSATION_FILE_PREFIX}{self.session_id}.json"
        snapshot = self.snapshot(test_file=test_file, implementation_file=implementation_file)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(target, snapshot.model_dump(mode="json", by_alias=True))
        except OSError as exc:
            raise PersistenceError(f"Failed to persist conversation {target}: {exc}") from exc
        LOGGER.info("Conversation with %d messages persisted to %s", len(self._log), target)
        return target

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _append(self, role: str, kind: MessageKind, content: str) -> None:
        index = len(self._log)
        self._log.append(ConversationMessage(role=role, kind=kind, content=content))
        self._counts[kind] += 1
        if kind in self._recent:
            self._recent[kind].append(index)


def load_snapshot(path: Path) -> ConversationSnapshot:
    """Read a persisted conversation back for inspection."""
    try:
        return ConversationSnapshot.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise PersistenceError(f"Failed to read conversation {path}: {exc}") from exc


__all__ = ["ConversationContext", "load_snapshot"]
