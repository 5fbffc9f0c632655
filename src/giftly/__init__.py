"""giftly - conversational intake engine for corporate gifting requests."""

__version__ = "0.1.0"
