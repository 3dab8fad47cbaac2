from .proxy import TemplatePlaybackProxy, encode_headers

__all__ = ["TemplatePlaybackProxy", "encode_headers"]
