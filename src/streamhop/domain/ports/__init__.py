from .playback_proxy import PlaybackProxyPort
from .provider_registry import ProviderRegistryPort
from .result_cache import ResultCachePort
from .subtitle_source import SubtitleSourcePort

__all__ = [
    "PlaybackProxyPort",
    "ProviderRegistryPort",
    "ResultCachePort",
    "SubtitleSourcePort",
]
