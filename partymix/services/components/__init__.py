"""
Profile pipeline components.

Pure, synchronous stages used by the ProfileService: adapters, entity
resolution, genre weighting, descriptor aggregation and scoring.
"""

from .source_adapters import AdaptedSource, adapt_payload, normalize_genre
from .entity_resolver import EntityResolver, ResolvedEntities, order_services
from .genre_weigher import GenreWeigher
from .descriptor_aggregator import aggregate_descriptors
from .scoring_engine import LinearPartyPolicy, ScoringEngine, ScoringPolicy

__all__ = [
    "AdaptedSource",
    "adapt_payload",
    "normalize_genre",
    "EntityResolver",
    "ResolvedEntities",
    "order_services",
    "GenreWeigher",
    "aggregate_descriptors",
    "LinearPartyPolicy",
    "ScoringEngine",
    "ScoringPolicy",
]
