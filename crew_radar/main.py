"""
Main script to load a directory snapshot, run nearby-crew discovery for one
viewer and render the result as an HTML map.
"""
import argparse
import asyncio
import logging
from typing import List, Optional

import pandas as pd

from crew_radar.ingestion import load_directory_records
from crew_radar.models.config import load_settings
from crew_radar.models.presence import MapBounds
from crew_radar.discovery.location import GeolocationUnavailable
from crew_radar.discovery.privacy import LocationPrivacyResolver
from crew_radar.discovery.proximity import RANK_CATEGORIES, NearbyUser
from crew_radar.discovery.session import DiscoverySession
from crew_radar.utils.rank_utils import abbreviate_rank
from crew_radar.visualization.map_surface import SCAN_STYLE_DARK, SCAN_STYLE_LIGHT, FoliumMapSurface

# Configure logging
logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Nearby crew radar")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--input", type=str, default="data/input/directory.csv",
                        help="Directory snapshot CSV")
    source.add_argument("--api", type=str, default=None,
                        help="Directory service URL (overrides CREW_RADAR_DIRECTORY_URL)")
    parser.add_argument("--output", type=str, default="data/output/nearby_map.html")
    parser.add_argument("--lat", type=float, default=None, help="Viewer latitude")
    parser.add_argument("--lon", type=float, default=None, help="Viewer longitude")
    parser.add_argument("--zoom", type=float, default=10)
    parser.add_argument("--bounds", type=float, nargs=4, metavar=("NORTH", "SOUTH", "EAST", "WEST"),
                        default=None, help="Viewport bounds for the scan circle")
    parser.add_argument("--query", type=str, default="")
    parser.add_argument("--rank", type=str, default="everyone", choices=sorted(RANK_CATEGORIES))
    parser.add_argument("--online-only", action="store_true")
    parser.add_argument("--theme", choices=("light", "dark"), default="light")
    return parser.parse_args(argv)


def results_frame(results: List[NearbyUser]) -> pd.DataFrame:
    """Tabular summary of a discovery run."""
    return pd.DataFrame(
        [
            {
                "id": n.user.id,
                "name": n.user.full_name,
                "rank": abbreviate_rank(n.user.rank) if n.user.rank else "",
                "ship": n.user.ship_name or "",
                "online": n.online,
                "distance_km": round(n.distance_km, 2) if n.distance_km is not None else None,
                "lat": round(n.plotted[0], 5),
                "lon": round(n.plotted[1], 5),
            }
            for n in results
        ],
        columns=["id", "name", "rank", "ship", "online", "distance_km", "lat", "lon"],
    )


def main(argv: Optional[List[str]] = None) -> Optional[pd.DataFrame]:
    args = _parse_args(argv)
    settings = load_settings()
    log.info("Starting crew radar with args: %s", args)

    # ---------- directory ingest ----------
    api_url = args.api or settings["directory_url"]
    try:
        if api_url:
            log.info("Fetching directory from %s", api_url)
            records = load_directory_records(api_url, is_api=True)
        else:
            log.info("Loading directory from %s", args.input)
            records = load_directory_records(args.input)
    except Exception as exc:
        log.error("Directory load failed: %s", exc)
        return None

    # ---------- view setup ----------
    bounds = None
    if args.bounds:
        try:
            bounds = MapBounds(*args.bounds)
        except ValueError as exc:
            log.warning("Ignoring bounds: %s", exc)

    def device_fix():
        if args.lat is None or args.lon is None:
            raise GeolocationUnavailable("No viewer position given")
        return args.lat, args.lon

    surface = FoliumMapSurface(center=settings["default_location"], zoom=args.zoom, bounds=bounds)
    session = DiscoverySession(
        surface,
        device_fix,
        resolver=LocationPrivacyResolver(salt=settings["privacy_salt"]),
        default_location=settings["default_location"],
        scan_style=SCAN_STYLE_DARK if args.theme == "dark" else SCAN_STYLE_LIGHT,
    )

    # ---------- discovery ----------
    asyncio.run(session.tracker.refresh())
    session.directory.replace_from_records(records)
    session.context.query = args.query
    session.context.rank_category = args.rank
    session.context.online_only = args.online_only
    results = session.refresh()
    log.info("Found %d users (radius %.1f km)", len(results), session.radius_km)

    # one scan frame for the snapshot
    session.scan.tick()

    # ---------- visualization ----------
    try:
        surface.save(args.output)
    except Exception as e:
        log.error("Visualization failed: %s", e)
        return None
    finally:
        session.close()

    frame = results_frame(results)
    if not frame.empty:
        print(frame.to_string(index=False))
    log.info("Processing completed successfully")
    return frame


if __name__ == "__main__":
    main()
