"""
Console command handler.

Parses one line of user input into a controller intent and returns the
text to show. This is the only UI the player ships; it stands in for the
track list and transport buttons of a graphical front end.
"""

import logging
import shlex
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from drive_player.library.types import format_size, format_time
from drive_player.playback.transport import PlayerStatus, TransportState

if TYPE_CHECKING:
    from drive_player.playback.controller import PlayerController

logger = logging.getLogger(__name__)

# Uploads the given paths, returns the number of files uploaded
UploadCallback = Callable[[list[str]], Awaitable[int]]

HELP_TEXT = """Commands:
  list                 Show the library
  play [N]             Play track N from the list, or toggle play/pause
  pause                Toggle play/pause
  next, prev           Skip forward/back
  seek SECONDS|M:SS    Jump within the current track
  vol [0-100]          Show or set volume
  mute                 Toggle mute
  shuffle              Toggle shuffle
  repeat               Cycle repeat mode (off, all, one)
  refresh              Reload the library
  upload FILE...       Upload audio files to the library
  status               Show what is playing
  quit                 Exit"""


def parse_position(text: str) -> float:
    """
    Parse '75', '75.5' or '1:15' into seconds.

    Raises:
        ValueError: If the text is not a position
    """
    if ":" in text:
        minutes, _, seconds = text.partition(":")
        return int(minutes) * 60 + float(seconds)
    return float(text)


def format_state(state: TransportState) -> str:
    """One-line summary of the transport state."""
    if state.status == PlayerStatus.IDLE:
        line = "Stopped"
    else:
        track = state.active_track
        label = state.status.value.capitalize()
        if state.status == PlayerStatus.LOADING:
            assert state.loading_track is not None
            line = f"Loading {state.loading_track.display_name}"
            if track is not None:
                line += f" (current: {track.display_name})"
        else:
            assert track is not None
            line = (
                f"{label}: {track.display_name} "
                f"[{format_time(state.position_seconds)}/{format_time(state.duration_seconds)}]"
            )
    return (
        f"{line} | vol {round(state.volume * 100)}% | "
        f"shuffle {'on' if state.shuffle_on else 'off'} | repeat {state.repeat_mode.value}"
    )


class ConsoleCommandHandler:
    """Translates console commands to controller intents."""

    def __init__(
        self,
        controller: "PlayerController",
        on_upload: Optional[UploadCallback] = None,
    ):
        self.controller = controller
        self._on_upload = on_upload
        self.quit_requested = False

    async def handle_line(self, line: str) -> str:
        """Run one command line. Returns the text to print (may be empty)."""
        try:
            parts = shlex.split(line)
        except ValueError as e:
            return f"Invalid input: {e}"
        if not parts:
            return ""

        command, args = parts[0].lower(), parts[1:]
        try:
            return await self._dispatch(command, args)
        except Exception as e:
            logger.error(f"Error handling command '{command}': {e}", exc_info=True)
            return f"Error: {e}"

    async def _dispatch(self, command: str, args: list[str]) -> str:
        c = self.controller

        if command in ("help", "?"):
            return HELP_TEXT
        elif command in ("list", "ls"):
            return self._format_library()
        elif command == "play":
            if args:
                return await self._play_number(args[0])
            await c.toggle_play_pause()
        elif command in ("pause", "toggle"):
            await c.toggle_play_pause()
        elif command in ("next", "n"):
            await c.next()
        elif command in ("prev", "p"):
            await c.prev()
        elif command == "seek":
            if not args:
                return "Usage: seek SECONDS|M:SS"
            try:
                c.seek(parse_position(args[0]))
            except ValueError:
                return f"Invalid position: {args[0]}"
        elif command in ("vol", "volume"):
            if not args:
                return f"Volume: {round(c.state.volume * 100)}%"
            try:
                c.set_volume(int(args[0]) / 100)
            except ValueError:
                return f"Invalid volume: {args[0]}"
        elif command == "mute":
            c.toggle_mute()
        elif command == "shuffle":
            c.toggle_shuffle()
        elif command == "repeat":
            c.cycle_repeat()
        elif command == "refresh":
            if await c.refresh_library():
                return f"{len(c.library)} tracks"
        elif command == "upload":
            return await self._upload(args)
        elif command == "status":
            pass
        elif command in ("quit", "exit", "q"):
            self.quit_requested = True
            return ""
        else:
            return f"Unknown command: {command} (type 'help')"

        return format_state(c.state)

    async def _play_number(self, text: str) -> str:
        library = self.controller.library
        try:
            number = int(text)
        except ValueError:
            return f"Invalid track number: {text}"
        if not 1 <= number <= len(library):
            return f"No track {number} (library has {len(library)})"
        await self.controller.select_track(library[number - 1].id)
        return format_state(self.controller.state)

    async def _upload(self, paths: list[str]) -> str:
        if not paths:
            return "Usage: upload FILE..."
        if self._on_upload is None:
            return "Upload is not available"
        count = await self._on_upload(paths)
        return f"Uploaded {count} of {len(paths)} file(s)"

    def _format_library(self) -> str:
        library = self.controller.library
        if not library:
            return "Library is empty"

        state = self.controller.state
        active_id = state.active_track.id if state.active_track else None
        loading_id = state.loading_track.id if state.loading_track else None

        lines = []
        for number, track in enumerate(library, 1):
            if track.id == loading_id:
                marker = "~"
            elif track.id == active_id:
                marker = ">" if state.playing else "|"
            else:
                marker = " "
            lines.append(
                f"{marker} {number:3d}. {track.display_name} ({format_size(track.byte_size)})"
            )
        return "\n".join(lines)
