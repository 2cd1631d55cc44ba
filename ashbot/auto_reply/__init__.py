"""
Auto-reply system for ashbot.

Provides:
- Command parsing (prefix and mention aliases)
- Conversation state for scripted exchanges
- Message routing and command dispatch
"""

from ashbot.auto_reply.commands import Command, is_command, normalize_command, parse_command
from ashbot.auto_reply.conversation import ConversationStep, ConversationStore
from ashbot.auto_reply.dispatch import ReplyDispatcher, Route

__all__ = [
    "Command",
    "is_command",
    "normalize_command",
    "parse_command",
    "ConversationStep",
    "ConversationStore",
    "ReplyDispatcher",
    "Route",
]
