"""Session and conversation management exposed for package consumers."""
from .context_service import ConversationContext, load_snapshot
from .models import ConversationMessage, MessageKind, Session, SessionState, new_session_id
from .requirements import extract_requirements, strip_requirements

__all__ = [
    "ConversationContext",
    "ConversationMessage",
    "MessageKind",
    "Session",
    "SessionState",
    "extract_requirements",
    "load_snapshot",
    "new_session_id",
    "strip_requirements",
]
