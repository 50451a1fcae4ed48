from .base import SYSTEM_PROMPT, BillingAssistant
from .services import get_assistant
from .types import ChatTurn, LLMResponse

__all__ = ["SYSTEM_PROMPT", "BillingAssistant", "ChatTurn", "LLMResponse", "get_assistant"]
