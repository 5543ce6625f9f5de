"""
Resolve where each user is drawn on the map.

Online users (fresh device fix) are plotted exactly. Everyone else is
scattered around their declared port by a deterministic offset derived from
their user id, so the marker stays put across re-renders while the exact
position stays hidden.

The default offset comes from a linear-congruential step over the character
codes of the id. It is reproducible by anyone who knows the id and is weak
obfuscation, not a privacy guarantee; pass a ``salt`` to key the seed.
"""
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from crew_radar.models.config import (
    FRESHNESS_WINDOW,
    LCG_MULTIPLIER,
    LCG_INCREMENT,
    LCG_MODULUS,
    SCATTER_SPAN_DEG,
)
from crew_radar.models.presence import LatLon, UserPresence
from crew_radar.utils.geo_utils import is_valid_coordinate

logger = logging.getLogger(__name__)


def id_seed(user_id: str, salt: Optional[str] = None) -> int:
    """Sum of the id's character codes, optionally mixed with a keyed digest."""
    seed = sum(ord(ch) for ch in user_id)
    if salt:
        digest = hashlib.blake2b(user_id.encode("utf-8"), key=salt.encode("utf-8")[:64], digest_size=4)
        seed += int.from_bytes(digest.digest(), "big")
    return seed


def lcg_unit(seed: int) -> float:
    """One linear-congruential draw normalised to [0, 1)."""
    return ((seed * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS) / LCG_MODULUS


def scatter_offset(user_id: str, salt: Optional[str] = None) -> Tuple[float, float]:
    """(dlat, dlon) in degrees, each within ±SCATTER_SPAN_DEG / 2."""
    seed = id_seed(user_id, salt)
    r1 = lcg_unit(seed)
    r2 = lcg_unit(seed + 1)
    return (r1 - 0.5) * SCATTER_SPAN_DEG, (r2 - 0.5) * SCATTER_SPAN_DEG


class LocationPrivacyResolver:
    """Decides precise vs. scattered plotting for each user."""

    def __init__(self, freshness=FRESHNESS_WINDOW, salt: Optional[str] = None):
        self.freshness = freshness
        self.salt = salt

    def is_online(self, user: UserPresence, now: Optional[datetime] = None) -> bool:
        return user.is_online(now, self.freshness)

    def resolve(self, user: UserPresence, now: Optional[datetime] = None) -> Optional[LatLon]:
        """
        Plotted coordinate for a user, or None when nothing valid can be drawn.

        Args:
            user: Directory entry
            now: Reference time for the freshness check (defaults to UTC now)
        """
        now = now or datetime.now(timezone.utc)
        if self.is_online(user, now):
            return user.device_location

        lat, lon = user.latitude, user.longitude
        if not is_valid_coordinate(lat, lon):
            logger.debug(f"No plottable location for {user.id}")
            return None
        return self.plot(user.id, (lat, lon))

    def plot(self, user_id: str, canonical: LatLon) -> LatLon:
        """Scattered position for an offline user: canonical + id-derived offset."""
        dlat, dlon = scatter_offset(user_id, self.salt)
        return canonical[0] + dlat, canonical[1] + dlon
