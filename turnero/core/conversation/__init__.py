"""Chat turn orchestration."""

from .orchestrator import APOLOGY, ConversationOrchestrator, TurnReply
from .prompt import SYSTEM_PROMPT, build_prompt, build_system_prompt
from .store import TurnStore

__all__ = [
    "APOLOGY",
    "ConversationOrchestrator",
    "TurnReply",
    "SYSTEM_PROMPT",
    "build_prompt",
    "build_system_prompt",
    "TurnStore",
]
