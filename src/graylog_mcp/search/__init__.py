"""
Graylog search translation layer.

Turns loosely specified search parameters into views-search payloads, runs
aggregation variant chains, and normalises the results.
"""

from .errors import AllVariantsFailed, BackendError, InvalidTimeRange, LogSearchError
from .fallback import FallbackExecutor
from .intervals import Interval, resolve_interval
from .normalizer import NormalizedResult, ResultNormalizer
from .payloads import AggregationPayloadBuilder, AggregationRequest, PayloadVariant
from .query_builder import FieldSelection, build_query_string, resolve_fields
from .timerange import AbsoluteWindow, RelativeWindow, resolve_time_range

__all__ = [
    'AbsoluteWindow',
    'AggregationPayloadBuilder',
    'AggregationRequest',
    'AllVariantsFailed',
    'BackendError',
    'FallbackExecutor',
    'FieldSelection',
    'Interval',
    'InvalidTimeRange',
    'LogSearchError',
    'NormalizedResult',
    'PayloadVariant',
    'RelativeWindow',
    'ResultNormalizer',
    'build_query_string',
    'resolve_fields',
    'resolve_interval',
    'resolve_time_range',
]
