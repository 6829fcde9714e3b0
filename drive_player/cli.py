"""
DrivePlayer CLI entry point.

Provides command-line interface for running DrivePlayer.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from drive_player import __version__
from drive_player.app import DrivePlayer
from drive_player.backends import OutputNotFoundError
from drive_player.config import Config, ConfigError, load_config
from drive_player.errors import AuthError, FetchError
from drive_player.library import format_size

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_AUTH_ERROR = 2
EXIT_NETWORK_ERROR = 3


def setup_logging(level: str = "info") -> None:
    """Configure logging to stdout."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )


def _parse_volume(value: str) -> float:
    """Parse a volume percentage (0-100) into 0.0-1.0."""
    try:
        v = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid volume: {value}. Use 0-100")
    if not 0 <= v <= 100:
        raise argparse.ArgumentTypeError(f"Invalid volume: {v}. Use 0-100")
    return v / 100


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drive-player",
        description="Minimal music player for audio files stored in Google Drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  drive-player --config config.yaml
  drive-player --list --json
  drive-player --upload song.mp3 other.flac
  drive-player --list-devices
  drive-player --access-token ya29... --backend null

Environment Variables:
  DRIVEPLAYER_ACCESS_TOKEN, DRIVEPLAYER_CLIENT_ID, DRIVEPLAYER_CLIENT_SECRET
  DRIVEPLAYER_TOKEN_CACHE, DRIVEPLAYER_FOLDER_NAME, DRIVEPLAYER_FOLDER_ID
  DRIVEPLAYER_VOLUME, DRIVEPLAYER_SHUFFLE, DRIVEPLAYER_REPEAT
  DRIVEPLAYER_BACKEND, DRIVEPLAYER_AUDIO_DEVICE, DRIVEPLAYER_LOG_LEVEL
""",
    )

    # General
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Modes
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio output devices and exit",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        dest="list_tracks",
        help="List tracks in the library folder and exit",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON (used with --list)",
    )
    parser.add_argument(
        "--upload",
        nargs="+",
        metavar="FILE",
        help="Upload audio files to the library folder and exit",
    )

    # Configuration
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.yaml"),
        metavar="PATH",
        help="Path to config file (default: ./config.yaml)",
    )

    # Authentication
    auth_group = parser.add_argument_group("Authentication")
    auth_group.add_argument("--access-token", metavar="TEXT", help="OAuth2 access token")
    auth_group.add_argument("--client-id", metavar="TEXT", help="OAuth2 client ID")
    auth_group.add_argument("--client-secret", metavar="TEXT", help="OAuth2 client secret")
    auth_group.add_argument(
        "--token-cache",
        metavar="PATH",
        help="Refresh token cache file (default: ~/.config/drive-player/token.json)",
    )

    # Library
    library_group = parser.add_argument_group("Library")
    library_group.add_argument(
        "--folder-name",
        metavar="TEXT",
        help="Drive folder holding the library (default: SchoolMusic)",
    )
    library_group.add_argument(
        "--folder-id",
        metavar="TEXT",
        help="Drive folder id (skips folder lookup)",
    )

    # Player
    player_group = parser.add_argument_group("Player")
    player_group.add_argument(
        "--volume",
        type=_parse_volume,
        metavar="0-100",
        help="Initial volume (default: 50)",
    )
    player_group.add_argument(
        "--shuffle",
        action="store_true",
        help="Start with shuffle on",
    )
    player_group.add_argument(
        "--repeat",
        choices=["off", "all", "one"],
        help="Initial repeat mode",
    )

    # Audio output
    backend_group = parser.add_argument_group("Audio Output")
    backend_group.add_argument(
        "--backend",
        choices=["local", "null"],
        help="Audio output type (default: local)",
    )
    backend_group.add_argument(
        "--audio-device",
        metavar="TEXT",
        help="Audio device: 'default', index, or name substring",
    )
    backend_group.add_argument(
        "--audio-buffer-size",
        type=int,
        metavar="INT",
        help="Audio buffer size in frames (default: 2048)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    mappings = {
        "access_token": ("auth", "access_token"),
        "client_id": ("auth", "client_id"),
        "client_secret": ("auth", "client_secret"),
        "token_cache": ("auth", "token_cache"),
        "folder_name": ("library", "folder_name"),
        "folder_id": ("library", "folder_id"),
        "volume": ("player", "volume"),
        "shuffle": ("player", "shuffle"),
        "repeat": ("player", "repeat"),
        "backend": ("backend", "type"),
        "audio_device": ("backend", "local", "device"),
        "audio_buffer_size": ("backend", "local", "buffer_size"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        # Flags only override when given
        if arg_name == "shuffle" and not value:
            continue
        _set_nested(result, path, value)

    return result


def log_config(config: Config) -> None:
    """Log configuration summary (without credentials)."""
    auth_mode = "access token" if config.auth.access_token else "OAuth client"
    logger.info(f"Credentials: {auth_mode}")
    logger.info(f"Library folder: {config.library.folder_id or config.library.folder_name}")
    logger.info(f"Audio output: {config.backend.type}")
    if config.backend.type == "local":
        logger.info(f"Audio device: {config.backend.local.device}")


async def prompt_for_code(url: str) -> str:
    """Consent handler: show the consent URL and read the code from stdin."""
    print("\nOpen this URL in a browser and grant access:\n")
    print(f"  {url}\n")
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, "Paste the authorization code: ")


def run_list_devices() -> int:
    """Print audio output devices."""
    from drive_player.backends.local import format_device_list, list_audio_devices

    try:
        devices = list_audio_devices()
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if not devices:
        print("No audio output devices found.")
        return EXIT_SUCCESS

    print(f"Found {len(devices)} audio output device(s):\n")
    print(format_device_list(devices))
    print("\nConfig example (add to config.yaml):")
    print("  backend:")
    print("    local:")
    print(f'      device: "{devices[0].index}"')
    return EXIT_SUCCESS


async def run_list(config: Config, json_output: bool) -> int:
    """Print the library listing."""
    app = DrivePlayer(config, consent_handler=prompt_for_code)
    try:
        tracks = await app.list_tracks()
    finally:
        await app.stop()

    if json_output:
        output = {
            "tracks": [t.to_dict() for t in tracks],
            "count": len(tracks),
        }
        print(json.dumps(output, indent=2))
        return EXIT_SUCCESS

    if not tracks:
        print("Library is empty.")
        return EXIT_SUCCESS

    print(f"{len(tracks)} track(s):\n")
    for number, track in enumerate(tracks, 1):
        print(f"  {number:3d}. {track.display_name} ({format_size(track.byte_size)})")
    return EXIT_SUCCESS


async def run_upload(config: Config, paths: list[str]) -> int:
    """Upload files and report how many made it."""
    app = DrivePlayer(config, consent_handler=prompt_for_code)
    try:
        uploaded = await app.upload_files(paths)
    finally:
        await app.stop()

    print(f"Uploaded {uploaded} of {len(paths)} file(s)")
    return EXIT_SUCCESS if uploaded == len(paths) else EXIT_NETWORK_ERROR


def run_command(args: argparse.Namespace) -> int:
    """
    Load configuration and run the selected mode.

    Returns:
        Exit code
    """
    # Setup basic logging first (will be reconfigured after config load)
    setup_logging("info")

    logger.info(f"DrivePlayer v{__version__}")

    try:
        cli_config = args_to_dict(args)
        config = load_config(args.config, cli_config)

        setup_logging(config.logging.level)
        log_config(config)

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        if args.list_tracks:
            return asyncio.run(run_list(config, args.json_output))
        if args.upload:
            return asyncio.run(run_upload(config, args.upload))

        app = DrivePlayer(config, consent_handler=prompt_for_code)
        asyncio.run(app.run())
        return EXIT_SUCCESS

    except AuthError as e:
        logger.error(f"Authentication failed: {e}")
        return EXIT_AUTH_ERROR

    except OutputNotFoundError as e:
        logger.error(f"Audio output error: {e}")
        return EXIT_CONFIG_ERROR

    except FetchError as e:
        logger.error(f"Network error: {e}")
        return EXIT_NETWORK_ERROR

    except (ConnectionError, OSError) as e:
        logger.error(f"Network error: {e}")
        return EXIT_NETWORK_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_NETWORK_ERROR


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 2=auth error, 3=network error
    """
    args = parse_args(argv)

    if args.list_devices:
        return run_list_devices()
    return run_command(args)


if __name__ == "__main__":
    sys.exit(main())
