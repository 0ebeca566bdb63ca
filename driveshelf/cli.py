"""
DriveShelf CLI entry point.

Command-line access to the provider: list albums, describe tracks and
download tracks or covers.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from driveshelf import __version__
from driveshelf.config import Config, ConfigError, load_config
from driveshelf.exceptions import (
    AuthError,
    InvalidPath,
    NotFound,
    ProviderError,
)
from driveshelf.provider import OneDriveProvider
from driveshelf.streaming import Range, strategy_for

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_AUTH_ERROR = 2
EXIT_BACKEND_ERROR = 3
EXIT_NOT_FOUND = 4


def setup_logging(level: str = "info") -> None:
    """Configure logging to stderr (stdout carries command output)."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _positive_int(value: str) -> int:
    """Parse a 1-based disc/track number."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a number: {value}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"Must be 1 or greater: {value}")
    return number


def _non_negative_int(value: str) -> int:
    """Parse a byte offset."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a number: {value}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"Must be 0 or greater: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="driveshelf",
        description="Serve a OneDrive folder of albums as an audio provider",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  driveshelf albums --json
  driveshelf info 1178e13b-f661-49db-98db-28a04c5583b7 1 1
  driveshelf fetch 1178e13b-f661-49db-98db-28a04c5583b7 1 1 -o track.flac
  driveshelf cover 1178e13b-f661-49db-98db-28a04c5583b7 --disc 1 -o cover.jpg

Environment Variables:
  DRIVESHELF_CLIENT_ID, DRIVESHELF_CLIENT_SECRET, DRIVESHELF_REFRESH_TOKEN
  DRIVESHELF_DRIVE, DRIVESHELF_ROOT, DRIVESHELF_EXTENSION
  DRIVESHELF_STRATEGY, DRIVESHELF_LOG_LEVEL
""",
    )

    # General
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.yaml"),
        metavar="PATH",
        help="Path to config file (default: ./config.yaml)",
    )

    # OneDrive
    od_group = parser.add_argument_group("OneDrive")
    od_group.add_argument("--client-id", metavar="TEXT", help="Azure application ID")
    od_group.add_argument("--client-secret", metavar="TEXT", help="Azure client secret")
    od_group.add_argument("--refresh-token", metavar="TEXT", help="OAuth refresh token")
    od_group.add_argument(
        "--drive",
        metavar="TEXT",
        help="Drive to read: 'me' or '<drive|user|group|site>:<id>' (default: me)",
    )

    # Library
    lib_group = parser.add_argument_group("Library")
    lib_group.add_argument("--root", metavar="PATH", help="Catalog root folder")
    lib_group.add_argument("--extension", metavar="EXT", help="Track extension (default: flac)")
    lib_group.add_argument(
        "--strategy",
        choices=["auto", "probe", "metadata"],
        help="Duration strategy (default: auto)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    albums = commands.add_parser("albums", help="List album identifiers")
    albums.add_argument("--json", action="store_true", dest="json_output", help="Output as JSON")

    info = commands.add_parser("info", help="Show size and duration of a track")
    info.add_argument("album")
    info.add_argument("disc", type=_positive_int)
    info.add_argument("track", type=_positive_int)
    info.add_argument("--json", action="store_true", dest="json_output", help="Output as JSON")

    fetch = commands.add_parser("fetch", help="Download a track or part of it")
    fetch.add_argument("album")
    fetch.add_argument("disc", type=_positive_int)
    fetch.add_argument("track", type=_positive_int)
    fetch.add_argument("-o", "--output", type=Path, required=True, metavar="FILE")
    fetch.add_argument("--start", type=_non_negative_int, default=0, metavar="BYTE")
    fetch.add_argument("--end", type=_non_negative_int, metavar="BYTE", help="Inclusive")

    cover = commands.add_parser("cover", help="Download an album or disc cover")
    cover.add_argument("album")
    cover.add_argument("--disc", type=_positive_int, metavar="INT")
    cover.add_argument("-o", "--output", type=Path, required=True, metavar="FILE")

    return parser


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    # Map CLI args to config paths
    mappings = {
        "client_id": ("onedrive", "client_id"),
        "client_secret": ("onedrive", "client_secret"),
        "refresh_token": ("onedrive", "refresh_token"),
        "drive": ("onedrive", "drive"),
        "root": ("library", "root"),
        "extension": ("library", "extension"),
        "strategy": ("library", "strategy"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        _set_nested(result, path, value)

    return result


def log_config(config: Config) -> None:
    """Log configuration summary (without sensitive data)."""
    logger.info(f"Drive: {config.onedrive.drive}")
    logger.info(f"Library root: /{config.library.root}")
    logger.info(f"Extension: {config.library.extension} (strategy: {config.library.strategy})")


async def _write_stream(stream: Any, output: Path) -> int:
    """Copy a resource stream into a file. Returns bytes written."""
    written = 0
    with open(output, "wb") as f:
        async for chunk in stream:
            f.write(chunk)
            written += len(chunk)
    return written


async def run_command(config: Config, args: argparse.Namespace) -> int:
    """
    Run one subcommand against a freshly loaded provider.

    Returns:
        Exit code
    """
    provider = await OneDriveProvider.create(
        client_id=config.onedrive.client_id,
        client_secret=config.onedrive.client_secret,
        refresh_token=config.onedrive.refresh_token,
        location=config.onedrive.location,
        root=config.library.root,
        extension=config.library.extension,
        strategy=strategy_for(config.library.extension, config.library.strategy),
    )

    async with provider:
        if args.command == "albums":
            album_ids = sorted(provider.albums())
            if args.json_output:
                print(json.dumps({"albums": album_ids, "count": len(album_ids)}, indent=2))
            else:
                for album_id in album_ids:
                    print(album_id)

        elif args.command == "info":
            info = await provider.get_audio_info(args.album, args.disc, args.track)
            if args.json_output:
                print(json.dumps(info.to_dict(), indent=2))
            else:
                duration = "unknown" if info.duration is None else f"{info.duration / 1000:.1f}s"
                print(f"{info.extension}, {info.size} bytes, {duration}")

        elif args.command == "fetch":
            range_ = Range(start=args.start, end=args.end)
            resource = await provider.get_audio(args.album, args.disc, args.track, range_)
            written = await _write_stream(resource.stream, args.output)
            logger.info(
                f"Wrote {written} bytes to {args.output} "
                f"(range {resource.range.start}-{resource.range.end}/{resource.range.total})"
            )

        elif args.command == "cover":
            stream = await provider.get_cover(args.album, args.disc)
            written = await _write_stream(stream, args.output)
            logger.info(f"Wrote {written} bytes to {args.output}")

    return EXIT_SUCCESS


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 2=auth error,
        3=backend error, 4=not found
    """
    args = build_parser().parse_args(argv)

    # Setup basic logging first (will be reconfigured after config load)
    setup_logging("info")

    try:
        config = load_config(args.config, args_to_dict(args))
        setup_logging(config.logging.level)
        log_config(config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        return asyncio.run(run_command(config, args))

    except AuthError as e:
        logger.error(f"Authentication failed: {e}")
        return EXIT_AUTH_ERROR

    except (NotFound, InvalidPath) as e:
        logger.error(f"Not found: {e}")
        return EXIT_NOT_FOUND

    except ProviderError as e:
        logger.error(f"Backend error: {e}")
        return EXIT_BACKEND_ERROR

    except (ConnectionError, OSError) as e:
        logger.error(f"Network error: {e}")
        return EXIT_BACKEND_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
