from .aggregator import ProfileShare, UsageStatsAggregator, signature_counter_key
from .counters import CounterStore, DocumentCounterStore, RedisCounterStore

__all__ = [
    "UsageStatsAggregator",
    "ProfileShare",
    "signature_counter_key",
    "CounterStore",
    "RedisCounterStore",
    "DocumentCounterStore",
]
