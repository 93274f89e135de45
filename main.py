from __future__ import annotations

import argparse
from datetime import datetime, timezone
from pathlib import Path
import sys

from loguru import logger

from app.viewmodels.load_coordinator import LoadCoordinator
from core.config import PipelineSettings
from core.errors import SettingsError
from core.models import LoadRequest, LoadState
from infrastructure.csv_catalog import CsvMediaCatalog
from infrastructure.exif_service import ExifGeotagReader
from infrastructure.location_source import FileLocationSource
from infrastructure.logging import init_logging
from infrastructure.settings import JsonSettings

BASE_DIR = Path(__file__).parent


def parse_time_ms(value: str) -> int:
    """Parse an ISO date/datetime (UTC when no offset is given) into epoch ms."""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as ex:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r}") from ex
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Merge a location history log and a media catalog into one timeline"
    )
    parser.add_argument("--start", type=parse_time_ms, help="Start of the window (ISO 8601)")
    parser.add_argument("--end", type=parse_time_ms, help="End of the window (ISO 8601)")
    parser.add_argument("--log", default="", help="Location history JSON file (optional)")
    parser.add_argument("--catalog", help="Media catalog CSV (default: catalog.csv_path setting)")
    parser.add_argument(
        "--folder",
        action="append",
        default=[],
        help="Folder to include; repeat for several (default: all folders)",
    )
    parser.add_argument(
        "--settings",
        default=str(BASE_DIR / "settings.json"),
        help="Path to settings.json (default: next to main.py)",
    )
    parser.add_argument(
        "--list-folders", action="store_true", help="List catalog folders and exit"
    )
    args = parser.parse_args(argv)
    if not args.list_folders and (args.start is None or args.end is None):
        parser.error("--start and --end are required unless --list-folders is given")
    return args


def _log_progress(state: LoadState) -> None:
    if state.completed:
        logger.info("Load completed")
    else:
        logger.info("Progress: {}%", state.progress)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = JsonSettings(args.settings)
        pipeline_settings = PipelineSettings.from_settings(settings)
    except (OSError, SettingsError) as ex:
        logger.error("Cannot load settings: {}", ex)
        return 2
    init_logging(settings.get("logging.dir"), settings.get("logging.level", "INFO"))

    catalog_path = args.catalog or settings.get("catalog.csv_path", "catalog.csv")
    coordinator = LoadCoordinator(
        log_source=FileLocationSource(),
        catalog=CsvMediaCatalog(catalog_path),
        geotag_reader=ExifGeotagReader(),
        settings=pipeline_settings,
    )

    with coordinator:
        if args.list_folders:
            for name in coordinator.list_folders():
                print(name)
            return 0

        coordinator.subscribe(_log_progress)
        coordinator.submit(
            LoadRequest(
                start_time=args.start,
                end_time=args.end,
                log_source_ref=args.log or None,
                selected_folders=frozenset(args.folder),
            )
        )
        coordinator.wait()
        state = coordinator.current_state()

    if not state.completed or state.result is None:
        logger.error("Load did not complete")
        return 1

    timeline = state.result
    print(
        f"{timeline.sample_count} location samples, {len(timeline.media_items)} media items"
        f" ({len(timeline.geotagged_items())} geotagged,"
        f" {len(timeline.interpolated_items())} interpolated)"
    )
    for item in sorted(timeline.media_items, key=lambda m: m.timestamp_ms):
        source = "exif" if item.has_direct_geotag else "interpolated"
        when = datetime.fromtimestamp(item.timestamp_ms / 1000, tz=timezone.utc)
        print(
            f"{when:%Y-%m-%d %H:%M:%S}  {item.position.lat:.6f},{item.position.lng:.6f}"
            f"  [{source}]  {item.path}"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
