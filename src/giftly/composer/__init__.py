"""Optional message-generation collaborator (LLM rewrite of assistant copy)."""

from giftly.composer.client import OpenAIComposer, get_composer
from giftly.composer.contracts import ComposerReply, MessageComposer, TurnContext

__all__ = [
    "ComposerReply",
    "MessageComposer",
    "OpenAIComposer",
    "TurnContext",
    "get_composer",
]
