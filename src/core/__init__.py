from src.core.config import get_config
from src.core.logging import setup_logging

__all__ = ["get_config", "setup_logging"]
