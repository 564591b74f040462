"""
Cache - переиспользование сгенерированного контента по сигнатуре личности
"""

from .manager import ContentCacheManager
from .models import CachedArtifact, CacheResult, ConsumerKey, ViewedHistory

__all__ = [
    "ContentCacheManager",
    "CachedArtifact",
    "CacheResult",
    "ConsumerKey",
    "ViewedHistory",
]
