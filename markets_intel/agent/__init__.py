"""
Conversation orchestration for the private markets agent.
"""

from .models import AgentResponse, QueryOutcome, ConversationTurn, Conversation
from .conversation_manager import ConversationManager
from .response_builder import ResponseBuilder
from .markets_agent import MarketsAgent

__all__ = [
    "AgentResponse",
    "QueryOutcome",
    "ConversationTurn",
    "Conversation",
    "ConversationManager",
    "ResponseBuilder",
    "MarketsAgent",
]
