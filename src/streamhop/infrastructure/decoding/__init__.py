from .keystream import KeystreamStore
from .pipeline import (
    DecodedPayload,
    PipelineDecoder,
    apply_step,
    run_pipeline,
    run_steps,
)
from .validators import extract_manifest, is_valid_payload

__all__ = [
    "DecodedPayload",
    "KeystreamStore",
    "PipelineDecoder",
    "apply_step",
    "extract_manifest",
    "is_valid_payload",
    "run_pipeline",
    "run_steps",
]
