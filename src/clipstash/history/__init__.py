"""History engine and its errors."""

from .engine import HistoryEngine
from .errors import HistoryError, ItemNotFoundError

__all__ = ["HistoryEngine", "HistoryError", "ItemNotFoundError"]
