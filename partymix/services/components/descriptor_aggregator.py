"""
Descriptor Aggregator

Averages per-track acoustic descriptors into the profile-level vector.
"""

from typing import Dict, List, Sequence

import structlog

from ...models.profile_models import (
    NEUTRAL_DESCRIPTOR_VALUE,
    NEUTRAL_TEMPO,
    AcousticDescriptors,
    MergedTrack,
)

logger = structlog.get_logger(__name__)


def neutral_value(dimension: str) -> float:
    return NEUTRAL_TEMPO if dimension == "tempo" else NEUTRAL_DESCRIPTOR_VALUE


def aggregate_descriptors(tracks: Sequence[MergedTrack]) -> AcousticDescriptors:
    """
    Mean of each dimension over the tracks that supply it.

    Tracks without a vector are skipped. Dimensions nobody supplies fall
    back to the neutral value, so every dimension of the result is set.
    """
    samples: Dict[str, List[float]] = {
        name: [] for name in AcousticDescriptors.dimensions()
    }

    for track in tracks:
        if track.audio_features is None:
            continue
        for name, value in track.audio_features.to_dict().items():
            if value is not None:
                samples[name].append(value)

    averaged = {
        name: (sum(values) / len(values)) if values else neutral_value(name)
        for name, values in samples.items()
    }

    logger.debug(
        "Descriptors aggregated",
        contributing_tracks=sum(1 for t in tracks if t.audio_features is not None),
        defaulted=[name for name, values in samples.items() if not values]
    )
    return AcousticDescriptors(**averaged)
