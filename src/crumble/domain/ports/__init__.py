from .addon_source import AddonSourcePort
from .id_resolver import IdResolverPort
from .result_cache import ResultCachePort
from .transport import TransportStrategyPort

__all__ = [
    "AddonSourcePort",
    "IdResolverPort",
    "ResultCachePort",
    "TransportStrategyPort",
]
