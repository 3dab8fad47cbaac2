from .client import HttpxSubtitleClient

__all__ = ["HttpxSubtitleClient"]
