"""
Models Module

Data models and configuration for the PartyMix engine.
"""

from .profile_models import (
    ServiceType,
    CommonTrack,
    CommonArtist,
    AcousticDescriptors,
    MergedTrack,
    MergedArtist,
    ServicePayload,
    UnifiedProfile,
    ProfileStats,
    ProfileReport,
    NEUTRAL_DESCRIPTOR_VALUE,
    NEUTRAL_TEMPO,
)
from .config_models import EngineConfig

__all__ = [
    # Entities
    "ServiceType",
    "CommonTrack",
    "CommonArtist",
    "AcousticDescriptors",
    "MergedTrack",
    "MergedArtist",
    "ServicePayload",

    # Profile output
    "UnifiedProfile",
    "ProfileStats",
    "ProfileReport",
    "NEUTRAL_DESCRIPTOR_VALUE",
    "NEUTRAL_TEMPO",

    # Configuration
    "EngineConfig",
]
