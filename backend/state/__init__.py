"""State management module.

This module provides:
- ConversationHistoryManager: Persisted conversation across tasks
- ConversationEntry: One stored conversation
"""

from state.conversation_history import ConversationEntry, ConversationHistoryManager

__all__ = [
    "ConversationEntry",
    "ConversationHistoryManager",
]
