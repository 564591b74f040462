from .router import (
    DataQuery,
    FreeChat,
    Intent,
    IntentRouter,
    LowInformation,
    NumericAnswer,
    TopicRequest,
    classify,
)

__all__ = [
    "Intent",
    "IntentRouter",
    "classify",
    "NumericAnswer",
    "TopicRequest",
    "DataQuery",
    "LowInformation",
    "FreeChat",
]
