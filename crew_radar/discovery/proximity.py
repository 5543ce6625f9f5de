"""
Proximity filtering: which directory users a viewer sees, and in what order.

Two paths:
  • search – a non-empty query matches name/rank/ship/city/country/company
    anywhere in the world, regardless of radius or presence;
  • browse – no query, users within ``radius_km`` of the viewer, nearest 6.
The rank-category filter applies to both.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from crew_radar.models.config import BROWSE_RESULT_LIMIT
from crew_radar.models.presence import LatLon, UserPresence
from crew_radar.discovery.privacy import LocationPrivacyResolver
from crew_radar.utils.geo_utils import calculate_bearing, haversine_distance, is_valid_coordinate

logger = logging.getLogger(__name__)

EVERYONE = "everyone"

# Rank category -> substrings looked for in the (lower-cased) rank text
RANK_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    EVERYONE: (),
    "tsi": ("technical superintendent", "superintendent", "tsi"),
    "msi": ("marine superintendent", "msi"),
    "mtr_co": ("master", "captain", "chief officer", "chief mate"),
    "20_30": ("2nd officer", "3rd officer", "second officer", "third officer"),
    "ce_2e": ("chief engineer", "2nd engineer", "second engineer"),
    "3e_4e": ("3rd engineer", "4th engineer", "third engineer", "fourth engineer"),
    "cadets": ("cadet", "trainee", "deck cadet", "engine cadet"),
    "crew": ("crew", "seaman", "bosun", "fitter", "wiper", "cook", "steward"),
}

SEARCH_FIELDS = ("full_name", "rank", "ship_name", "city", "country", "company")


class NearbyUser:
    """A filtered user together with where and how far away they are drawn."""

    def __init__(self, user: UserPresence, plotted: LatLon, online: bool,
                 distance_km: Optional[float] = None, bearing_deg: Optional[float] = None):
        self.user = user
        self.plotted = plotted
        self.online = online
        self.distance_km = distance_km
        self.bearing_deg = bearing_deg

    @property
    def id(self) -> str:
        return self.user.id

    def __repr__(self) -> str:
        dist = f"{self.distance_km:.1f} km" if self.distance_km is not None else "?"
        return f"NearbyUser({self.user.id!r}, {dist}, online={self.online})"


def matches_rank_category(rank: Optional[str], category: Optional[str]) -> bool:
    """Case-insensitive keyword match; unknown or 'everyone' categories match all."""
    keywords = RANK_CATEGORIES.get((category or EVERYONE).lower())
    if not keywords:
        if category and category.lower() not in RANK_CATEGORIES:
            logger.warning(f"Unknown rank category {category!r}, not filtering")
        return True
    text = (rank or "").lower()
    return any(k in text for k in keywords)


def matches_query(user: UserPresence, query: str) -> bool:
    needle = query.strip().lower()
    for field in SEARCH_FIELDS:
        value = getattr(user, field, None)
        if value and needle in str(value).lower():
            return True
    return False


class ProximityFilter:
    """Combines search, radius, online-only and rank filters into one ordered list."""

    def __init__(self, resolver: Optional[LocationPrivacyResolver] = None,
                 browse_limit: int = BROWSE_RESULT_LIMIT):
        self.resolver = resolver or LocationPrivacyResolver()
        self.browse_limit = browse_limit

    def apply(self, candidates: Iterable[UserPresence],
              viewer: Optional[LatLon],
              radius_km: float,
              online_only: bool = False,
              rank_category: str = EVERYONE,
              query: str = "",
              now: Optional[datetime] = None) -> List[NearbyUser]:
        """
        Filter and order candidates for one render.

        Args:
            candidates: Directory snapshot
            viewer: Viewer's last accepted fix, or None before the first fix
            radius_km: Browse radius
            online_only: Browse-mode switch keeping only users with a fresh fix
            rank_category: Key of RANK_CATEGORIES
            query: Free-text search; non-empty switches to search mode
            now: Reference time for presence checks

        Returns:
            Sorted NearbyUser list (nearest 6 when browsing, all matches when searching)
        """
        now = now or datetime.now(timezone.utc)
        if viewer is not None and not is_valid_coordinate(*viewer):
            logger.warning(f"Ignoring invalid viewer location {viewer}")
            viewer = None

        searching = bool(query and query.strip())
        if not searching and viewer is None:
            return []

        results: List[NearbyUser] = []
        for user in candidates:
            if searching and not matches_query(user, query):
                continue
            plotted = self.resolver.resolve(user, now)
            if plotted is None:
                continue

            distance = bearing = None
            if viewer is not None:
                distance = haversine_distance(viewer[0], viewer[1], plotted[0], plotted[1])
                bearing = calculate_bearing(viewer[0], viewer[1], plotted[0], plotted[1])

            online = self.resolver.is_online(user, now)
            if not searching:
                if distance > radius_km:
                    continue
                if online_only and not online:
                    continue
            if not matches_rank_category(user.rank, rank_category):
                continue

            results.append(NearbyUser(user, plotted, online, distance, bearing))

        if viewer is not None:
            # sorted() is stable, ties keep feed order
            results = sorted(results, key=lambda n: n.distance_km)

        if not searching:
            results = results[:self.browse_limit]

        logger.debug(f"{'search' if searching else 'browse'} produced {len(results)} users")
        return results
