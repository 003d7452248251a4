"""
Source Adapters

Pure mapping functions from service-native payloads to the common entity
shapes. Adapters never raise on malformed input: missing fields fall back
to documented defaults and non-dict items are skipped.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from ...models.profile_models import (
    AcousticDescriptors,
    CommonArtist,
    CommonTrack,
    ServicePayload,
    ServiceType,
)

logger = structlog.get_logger(__name__)

UNKNOWN_TRACK = "Unknown Track"
UNKNOWN_ARTIST = "Unknown Artist"

# Aliases that different services use for the same genre
GENRE_ALIASES = {
    "indie rock": "indie",
    "alternative rock": "alternative",
    "hip hop": "hip-hop",
    "hip-hop/rap": "hip-hop",
    "rap": "hip-hop",
    "r&b": "rnb",
    "r&b/soul": "rnb",
    "electronica": "electronic",
    "dance/electronic": "electronic",
}

# Catch-all tags that carry no taste signal
IGNORED_GENRES = {"music", "seen live"}

SCALED_DESCRIPTORS = (
    "danceability",
    "energy",
    "valence",
    "acousticness",
    "instrumentalness",
    "speechiness",
    "liveness",
)

APPLE_SONG_TYPES = {"songs", "library-songs"}
APPLE_ARTWORK_SIZE = "300"
LASTFM_IMAGE_PREFERENCE = ("extralarge", "large", "medium", "small")


@dataclass
class AdaptedSource:
    """Common entities produced from one service's payload."""
    service: ServiceType
    tracks: List[CommonTrack] = field(default_factory=list)
    artists: List[CommonArtist] = field(default_factory=list)
    audio_features: Dict[str, AcousticDescriptors] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.tracks and not self.artists


# Shared helpers

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return int(number)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_genre(genre: Any) -> Optional[str]:
    """Lowercase, trim and alias a genre tag. Returns None for unusable tags."""
    text = _text(genre)
    if not text:
        return None
    normalized = " ".join(text.lower().split())
    normalized = GENRE_ALIASES.get(normalized, normalized)
    if normalized in IGNORED_GENRES:
        return None
    return normalized


def normalize_genres(genres: Iterable[Any]) -> Tuple[str, ...]:
    """Normalize a genre list, keeping first-seen order and dropping duplicates."""
    seen: "OrderedDict[str, None]" = OrderedDict()
    for genre in genres or ():
        normalized = normalize_genre(genre)
        if normalized:
            seen.setdefault(normalized, None)
    return tuple(seen)


def extract_isrc(track: Any) -> Optional[str]:
    """
    Find the ISRC wherever a service nests it.

    Checks Spotify's ``external_ids``, Apple's ``attributes`` and
    ``relationships.songs``, then a top-level field.
    """
    track = _as_dict(track)
    attributes = _as_dict(track.get("attributes"))
    song_refs = _as_list(
        _as_dict(_as_dict(track.get("relationships")).get("songs")).get("data")
    )

    candidates = [
        _as_dict(track.get("external_ids")).get("isrc"),
        attributes.get("isrc"),
        _as_dict(_as_dict(song_refs[0]).get("attributes")).get("isrc") if song_refs else None,
        track.get("isrc"),
    ]
    for candidate in candidates:
        isrc = _text(candidate)
        if isrc:
            return isrc.upper()
    return None


def fallback_source_id(title: Optional[str], artist: Optional[str], rank: int) -> str:
    """Source id for items the service returned without one."""
    if title or artist:
        return "_".join(f"{title or ''} {artist or ''}".split())
    return f"rank_{rank}"


def _scaled_descriptor(value: Any) -> Optional[float]:
    number = _to_float(value)
    if number is None:
        return None
    return min(max(number * 100.0, 0.0), 100.0)


# Spotify

def adapt_spotify_tracks(items: Any) -> List[CommonTrack]:
    tracks = []
    for rank, item in enumerate(_as_list(items)):
        if not isinstance(item, dict):
            continue
        album = _as_dict(item.get("album"))
        images = _as_list(album.get("images"))
        artist_names = [
            _text(_as_dict(artist).get("name"))
            for artist in _as_list(item.get("artists"))
        ]
        artist_name = ", ".join(name for name in artist_names if name) or UNKNOWN_ARTIST
        title = _text(item.get("name")) or UNKNOWN_TRACK

        tracks.append(CommonTrack(
            source_service=ServiceType.SPOTIFY,
            source_id=_text(item.get("id")) or fallback_source_id(title, artist_name, rank),
            title=title,
            artist_name=artist_name,
            album_name=_text(album.get("name")),
            duration_ms=max(_to_int(item.get("duration_ms")), 0),
            image_url=_text(_as_dict(images[0]).get("url")) if images else None,
            standard_recording_id=extract_isrc(item),
            source_rank=rank,
        ))
    return tracks


def adapt_spotify_artists(items: Any) -> List[CommonArtist]:
    artists = []
    for rank, item in enumerate(_as_list(items)):
        if not isinstance(item, dict):
            continue
        images = _as_list(item.get("images"))
        name = _text(item.get("name")) or UNKNOWN_ARTIST
        artists.append(CommonArtist(
            source_service=ServiceType.SPOTIFY,
            source_id=_text(item.get("id")) or fallback_source_id(None, name, rank),
            name=name,
            image_url=_text(_as_dict(images[0]).get("url")) if images else None,
            genres=normalize_genres(_as_list(item.get("genres"))),
            source_rank=rank,
        ))
    return artists


def adapt_spotify_audio_features(items: Any) -> Dict[str, AcousticDescriptors]:
    """
    Map Spotify audio features to descriptor vectors keyed by track id.

    Spotify reports the bounded descriptors on a 0.0-1.0 scale; they are
    converted to 0-100 here. Tempo stays in BPM.
    """
    features = {}
    for item in _as_list(items):
        if not isinstance(item, dict):
            continue
        track_id = _text(item.get("id"))
        if not track_id:
            continue
        values = {name: _scaled_descriptor(item.get(name)) for name in SCALED_DESCRIPTORS}
        tempo = _to_float(item.get("tempo"))
        values["tempo"] = tempo if tempo is not None and tempo > 0 else None

        descriptors = AcousticDescriptors(**values)
        if not descriptors.is_empty():
            features[track_id] = descriptors
    return features


# Apple Music

def _apple_song(item: Any) -> Optional[Dict[str, Any]]:
    """Unwrap a history item to its song resource, or None if it is not a song."""
    item = _as_dict(item)
    if not item.get("attributes"):
        nested = _as_list(item.get("data"))
        item = _as_dict(nested[0]) if nested else {}
    if not item.get("attributes"):
        return None
    if item.get("type") and item.get("type") not in APPLE_SONG_TYPES:
        return None
    return item


def _apple_artwork(attributes: Dict[str, Any]) -> Optional[str]:
    url = _text(_as_dict(attributes.get("artwork")).get("url"))
    if not url:
        return None
    return url.replace("{w}", APPLE_ARTWORK_SIZE).replace("{h}", APPLE_ARTWORK_SIZE)


def _apple_ranked_songs(items: Iterable[Any]) -> List[Tuple[Dict[str, Any], int]]:
    """
    Collapse history lists into songs ordered by play frequency.

    A song's play count is its explicit ``playCount`` when present, otherwise
    the number of lists it appears in. Ties keep first-seen order.
    """
    counted: "OrderedDict[str, List[Any]]" = OrderedDict()
    for item in items:
        song = _apple_song(item)
        if song is None:
            continue
        attributes = _as_dict(song.get("attributes"))
        key = _text(song.get("id")) or fallback_source_id(
            _text(attributes.get("name")), _text(attributes.get("artistName")), len(counted)
        )
        if key not in counted:
            counted[key] = [song, 0, 0]
        entry = counted[key]
        entry[1] += 1
        entry[2] = max(entry[2], _to_int(attributes.get("playCount")))

    ranked = [
        (song, max(occurrences, explicit))
        for song, occurrences, explicit in counted.values()
    ]
    return sorted(ranked, key=lambda pair: -pair[1])


def adapt_apple_tracks(items: Any) -> List[CommonTrack]:
    tracks = []
    for rank, (song, _) in enumerate(_apple_ranked_songs(_as_list(items))):
        attributes = _as_dict(song.get("attributes"))
        title = _text(attributes.get("name")) or UNKNOWN_TRACK
        artist_name = _text(attributes.get("artistName")) or UNKNOWN_ARTIST
        tracks.append(CommonTrack(
            source_service=ServiceType.APPLE_MUSIC,
            source_id=_text(song.get("id")) or fallback_source_id(title, artist_name, rank),
            title=title,
            artist_name=artist_name,
            album_name=_text(attributes.get("albumName")),
            duration_ms=max(_to_int(attributes.get("durationInMillis")), 0),
            image_url=_apple_artwork(attributes),
            standard_recording_id=extract_isrc(song),
            source_rank=rank,
        ))
    return tracks


def adapt_apple_artists(artist_items: Any, history_items: Any = None) -> List[CommonArtist]:
    """
    Map Apple Music artists.

    Explicit artist resources are used when present. Otherwise artists are
    derived from the listening history, ranked by summed play counts and
    carrying the genres of their songs.
    """
    explicit = [item for item in _as_list(artist_items) if isinstance(item, dict)]
    if explicit:
        artists = []
        for rank, item in enumerate(explicit):
            attributes = _as_dict(item.get("attributes"))
            name = _text(attributes.get("name")) or UNKNOWN_ARTIST
            artists.append(CommonArtist(
                source_service=ServiceType.APPLE_MUSIC,
                source_id=_text(item.get("id")) or fallback_source_id(None, name, rank),
                name=name,
                image_url=_apple_artwork(attributes),
                genres=normalize_genres(_as_list(attributes.get("genreNames"))),
                source_rank=rank,
            ))
        return artists

    derived: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for song, play_count in _apple_ranked_songs(_as_list(history_items)):
        attributes = _as_dict(song.get("attributes"))
        name = _text(attributes.get("artistName"))
        if not name:
            continue
        entry = derived.setdefault(name, {"plays": 0, "genres": []})
        entry["plays"] += play_count
        entry["genres"].extend(_as_list(attributes.get("genreNames")))

    ranked = sorted(derived.items(), key=lambda pair: -pair[1]["plays"])
    return [
        CommonArtist(
            source_service=ServiceType.APPLE_MUSIC,
            source_id=fallback_source_id(None, name, rank),
            name=name,
            genres=normalize_genres(entry["genres"]),
            source_rank=rank,
        )
        for rank, (name, entry) in enumerate(ranked)
    ]


# Last.fm

def _lastfm_artist_name(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return _text(value)
    value = _as_dict(value)
    return _text(value.get("name")) or _text(value.get("#text"))


def _lastfm_image(images: Any) -> Optional[str]:
    by_size = {
        _as_dict(image).get("size"): _text(_as_dict(image).get("#text"))
        for image in _as_list(images)
    }
    for size in LASTFM_IMAGE_PREFERENCE:
        if by_size.get(size):
            return by_size[size]
    return None


def _lastfm_ordered(items: Any) -> List[Dict[str, Any]]:
    """
    Order Last.fm chart entries.

    Uses ``@attr.rank`` when every entry carries one, otherwise play count
    descending with ties in list order.
    """
    entries = [item for item in _as_list(items) if isinstance(item, dict)]
    ranks = [_to_int(_as_dict(item.get("@attr")).get("rank"), -1) for item in entries]
    if entries and all(rank > 0 for rank in ranks):
        return [item for _, item in sorted(zip(ranks, entries), key=lambda pair: pair[0])]
    return sorted(entries, key=lambda item: -_to_int(item.get("playcount")))


def _lastfm_duration_ms(value: Any) -> int:
    duration = max(_to_int(value), 0)
    # Charts report seconds; a few endpoints report milliseconds
    return duration if duration > 10000 else duration * 1000


def adapt_lastfm_tracks(items: Any) -> List[CommonTrack]:
    tracks = []
    for rank, item in enumerate(_lastfm_ordered(items)):
        title = _text(item.get("name")) or UNKNOWN_TRACK
        artist_name = _lastfm_artist_name(item.get("artist")) or UNKNOWN_ARTIST
        album = item.get("album")
        album_name = _text(album) if isinstance(album, str) else (
            _text(_as_dict(album).get("#text")) or _text(_as_dict(album).get("title"))
        )
        tracks.append(CommonTrack(
            source_service=ServiceType.LASTFM,
            source_id=_text(item.get("mbid")) or fallback_source_id(title, artist_name, rank),
            title=title,
            artist_name=artist_name,
            album_name=album_name,
            duration_ms=_lastfm_duration_ms(item.get("duration")),
            image_url=_lastfm_image(item.get("image")),
            # MusicBrainz ids are not ISRCs; Last.fm tracks never merge by id
            standard_recording_id=None,
            source_rank=rank,
        ))
    return tracks


def adapt_lastfm_artists(items: Any) -> List[CommonArtist]:
    artists = []
    for rank, item in enumerate(_lastfm_ordered(items)):
        name = _text(item.get("name")) or UNKNOWN_ARTIST
        tags = [
            _as_dict(tag).get("name")
            for tag in _as_list(_as_dict(item.get("tags")).get("tag"))
        ]
        artists.append(CommonArtist(
            source_service=ServiceType.LASTFM,
            source_id=_text(item.get("mbid")) or fallback_source_id(None, name, rank),
            name=name,
            image_url=_lastfm_image(item.get("image")),
            genres=normalize_genres(tags),
            source_rank=rank,
        ))
    return artists


def adapt_payload(payload: ServicePayload) -> AdaptedSource:
    """Run the adapter variant for the payload's service."""
    match payload.service:
        case ServiceType.SPOTIFY:
            adapted = AdaptedSource(
                service=payload.service,
                tracks=adapt_spotify_tracks(payload.tracks),
                artists=adapt_spotify_artists(payload.artists),
                audio_features=adapt_spotify_audio_features(payload.audio_features),
            )
        case ServiceType.APPLE_MUSIC:
            history = _as_list(payload.tracks) + _as_list(payload.play_history)
            adapted = AdaptedSource(
                service=payload.service,
                tracks=adapt_apple_tracks(history),
                artists=adapt_apple_artists(payload.artists, history),
            )
        case ServiceType.LASTFM:
            adapted = AdaptedSource(
                service=payload.service,
                tracks=adapt_lastfm_tracks(payload.tracks),
                artists=adapt_lastfm_artists(payload.artists),
            )
        case _:
            raise ValueError(f"Unsupported service: {payload.service!r}")

    logger.debug(
        "Payload adapted",
        source_service=payload.service.value,
        tracks=len(adapted.tracks),
        artists=len(adapted.artists),
        audio_features=len(adapted.audio_features)
    )
    return adapted
