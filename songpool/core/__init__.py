from .cache import CachePool
from .selection import search, select_many, select_one, validate
from .service import SongService

__all__ = ["CachePool", "SongService", "select_one", "select_many", "search", "validate"]
