from .resolution import (
    MediaType,
    ProviderHealth,
    ResolutionRequest,
    ResolutionResult,
    SubtitleTrack,
)

__all__ = [
    "MediaType",
    "ProviderHealth",
    "ResolutionRequest",
    "ResolutionResult",
    "SubtitleTrack",
]
