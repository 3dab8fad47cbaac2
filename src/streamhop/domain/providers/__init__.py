from .descriptor import (
    AesCbcDecrypt,
    Base64Decode,
    CaesarShift,
    CharCodeShift,
    CharSubstitution,
    DecodeStep,
    HexDecode,
    HopStep,
    JsonBoundaryScan,
    NestedBase64,
    ProviderDescriptor,
    ResultSpec,
    Reverse,
    SplitJoinLookup,
    StripPrefix,
    TokenExtractor,
    XorKeystream,
)
from .exceptions import (
    AggregateResolutionError,
    ChallengeDetected,
    DecodePipelineFailed,
    DecodeStepFailed,
    DuplicateProviderError,
    KeyMismatch,
    PaddingInvalid,
    ProviderError,
    ProviderLoadError,
    ProviderNotFoundError,
    ProviderTimeout,
    ProviderValidationError,
    ResolutionError,
    TokenNotFound,
    UpstreamUnavailable,
    ValidationFailed,
)

__all__ = [
    "AesCbcDecrypt",
    "AggregateResolutionError",
    "Base64Decode",
    "CaesarShift",
    "ChallengeDetected",
    "CharCodeShift",
    "CharSubstitution",
    "DecodePipelineFailed",
    "DecodeStep",
    "DecodeStepFailed",
    "DuplicateProviderError",
    "HexDecode",
    "HopStep",
    "JsonBoundaryScan",
    "KeyMismatch",
    "NestedBase64",
    "PaddingInvalid",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderLoadError",
    "ProviderNotFoundError",
    "ProviderTimeout",
    "ProviderValidationError",
    "ResolutionError",
    "ResultSpec",
    "Reverse",
    "SplitJoinLookup",
    "StripPrefix",
    "TokenExtractor",
    "TokenNotFound",
    "UpstreamUnavailable",
    "ValidationFailed",
    "XorKeystream",
]
