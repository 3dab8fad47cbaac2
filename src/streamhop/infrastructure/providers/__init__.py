from .circuit_breaker import ProviderCircuitBreaker
from .loader import load_yaml_provider, parse_provider
from .registry import ProviderRegistry

__all__ = [
    "ProviderCircuitBreaker",
    "ProviderRegistry",
    "load_yaml_provider",
    "parse_provider",
]
