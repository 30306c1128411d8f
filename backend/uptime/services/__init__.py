"""Services for polling, sampling, aggregation and scheduling."""
from .prober import ProberService
from .sampler import SamplerService
from .aggregator import AggregationEngine
from .check_source import DatabaseCheckSource, ApiCheckSource
from .scheduler import SchedulerService, SchedulerConfig

__all__ = [
    "ProberService",
    "SamplerService",
    "AggregationEngine",
    "DatabaseCheckSource",
    "ApiCheckSource",
    "SchedulerService",
    "SchedulerConfig",
]
