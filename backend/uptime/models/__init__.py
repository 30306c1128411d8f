"""Database models."""
from .check import Check
from .sample import HttpSample, HttpsSample, TcpSample, PingSample, SAMPLE_MODELS, sample_model_for
from .qos_bucket import QosBucket
from .tag import Tag
from .check_event import CheckEvent

__all__ = [
    "Check",
    "HttpSample",
    "HttpsSample",
    "TcpSample",
    "PingSample",
    "SAMPLE_MODELS",
    "sample_model_for",
    "QosBucket",
    "Tag",
    "CheckEvent",
]
