import hashlib
import logging
import math
import re
import unicodedata
from typing import Sequence
from urllib.parse import urlparse

import numpy as np

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000
WALKING_SPEED_METERS_PER_MINUTE = 80


def haversine_distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Great-circle distance between two WGS84 points, rounded to metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_METERS * c)


def walk_time_minutes(distance_meters: float) -> int:
    """Walking time at 80 m/min, never less than one minute."""
    return max(1, math.ceil(max(0.0, distance_meters) / WALKING_SPEED_METERS_PER_MINUTE))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def normalize_similarity(similarity: float) -> float:
    """Map a cosine similarity in [-1, 1] onto a [0, 1] score.

    Monotonic clamp: negative similarities carry no signal for ranking and map to 0,
    which is also the score of a candidate the vector store did not return.
    """
    try:
        value = float(similarity)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    if not (0.0 <= value <= 1.0):
        logger.debug(f"Similarity out of range: {value}, clipping to [0, 1]")
    return max(0.0, min(1.0, value))


def cosine_similarity_from_distance(distance: float) -> float:
    """Convert pgvector cosine distance ([0, 2]) to a [0, 1] score."""
    return normalize_similarity(1.0 - float(distance))


_WHITESPACE = re.compile(r"\s+")


def normalize_query_text(text: str) -> str:
    """Canonical form used for cache keys: NFKC, collapsed whitespace, trimmed, lowercased."""
    normalized = unicodedata.normalize("NFKC", text)
    return _WHITESPACE.sub(" ", normalized).strip().lower()


def text_fingerprint(text: str, length: int = 32) -> str:
    return hashlib.sha256(normalize_query_text(text).encode("utf-8")).hexdigest()[:length]


def sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            port = f":{parsed.port}" if parsed.port else ""
            sanitized = parsed._replace(
                netloc=f"{parsed.username or ''}:*@{parsed.hostname}{port}"
            )
            return sanitized.geturl()
        return url
    except ValueError:
        return url


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))
