from .expiry import derive_expires_at
from .result_cache import TTLResultCache

__all__ = ["TTLResultCache", "derive_expires_at"]
