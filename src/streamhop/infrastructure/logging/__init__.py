from .setup import configure_logging, uvicorn_log_config

__all__ = ["configure_logging", "uvicorn_log_config"]
