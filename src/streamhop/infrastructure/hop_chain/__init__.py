from .challenge import detect_challenge, is_challenge
from .walker import DEFAULT_USER_AGENT, HopChainWalker, RawPayload, origin_of

__all__ = [
    "DEFAULT_USER_AGENT",
    "HopChainWalker",
    "RawPayload",
    "detect_challenge",
    "is_challenge",
    "origin_of",
]
