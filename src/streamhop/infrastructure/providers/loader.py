from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from streamhop.domain.providers import (
    DecodeStepFailed,
    ProviderDescriptor,
    ProviderLoadError,
    ProviderValidationError,
)
from streamhop.infrastructure.providers.adapters import to_domain_provider_descriptor
from streamhop.infrastructure.providers.validation_schema import (
    ProviderDescriptorPydantic,
)

log = structlog.get_logger(__name__)


def parse_provider(data: object) -> ProviderDescriptor:
    """Validate an already-parsed mapping and return the domain descriptor."""
    if data is None:
        raise ProviderValidationError("provider definition is empty")
    if not isinstance(data, dict):
        raise ProviderValidationError("provider root must be a mapping/object")
    try:
        pydantic_model = ProviderDescriptorPydantic.model_validate(data)
        return to_domain_provider_descriptor(pydantic_model)
    except ValidationError as e:
        raise ProviderValidationError(str(e)) from e
    except DecodeStepFailed as e:
        # build_mapping rejects duplicate substitution alphabets
        raise ProviderValidationError(str(e)) from e


def load_yaml_provider(path: Path) -> ProviderDescriptor:
    """Load and validate a YAML provider file, returning the domain model."""
    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
    except (OSError, UnicodeDecodeError) as e:
        log.error(
            "provider_load_failed",
            provider_file=str(path),
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise ProviderLoadError(str(e)) from e
    except yaml.YAMLError as e:
        log.error(
            "provider_validation_failed",
            provider_file=str(path),
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise ProviderValidationError(str(e)) from e

    try:
        return parse_provider(data)
    except ProviderValidationError as e:
        log.error(
            "provider_validation_failed",
            provider_file=str(path),
            error_type=type(e.__cause__ or e).__name__,
            error_message=str(e),
        )
        raise
