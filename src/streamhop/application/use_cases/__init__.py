from .resolve_stream import ResolutionOrchestrator

__all__ = ["ResolutionOrchestrator"]
