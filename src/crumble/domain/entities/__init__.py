from .errors import (
    AggregationError,
    AllStrategiesExhausted,
    InvalidQuery,
    InvalidResponseShape,
    ResolutionFailed,
    TransientNetworkError,
)
from .streams import (
    AddonEndpoint,
    CacheKey,
    MediaType,
    NormalizedStream,
    PlaybackLocator,
    ProxyHealthRecord,
    QualityTier,
    SourceTag,
    StreamQuery,
)

__all__ = [
    "AddonEndpoint",
    "AggregationError",
    "AllStrategiesExhausted",
    "CacheKey",
    "InvalidQuery",
    "InvalidResponseShape",
    "MediaType",
    "NormalizedStream",
    "PlaybackLocator",
    "ProxyHealthRecord",
    "QualityTier",
    "ResolutionFailed",
    "SourceTag",
    "StreamQuery",
    "TransientNetworkError",
]
