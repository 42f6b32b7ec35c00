from .cache import CATEGORY_OPERATIONS, CacheManager, CacheStats, generate_key

__all__ = ["CATEGORY_OPERATIONS", "CacheManager", "CacheStats", "generate_key"]
