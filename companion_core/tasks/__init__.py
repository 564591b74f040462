"""
Фоновые задачи. StageCompletionHandler импортируется из tasks.stage_handler
(зависит от stats, который сам использует BackgroundTaskRunner).
"""

from .background import BackgroundTaskRunner

__all__ = ["BackgroundTaskRunner"]
