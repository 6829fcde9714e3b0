"""
DrivePlayer Application.

Main orchestrator that wires together all components and manages lifecycle.
"""

import asyncio
import logging
import mimetypes
import signal
import sys
from pathlib import Path
from typing import Optional

from drive_player.auth import (
    ConsentHandler,
    CredentialProvider,
    OAuthTokenProvider,
    StaticTokenProvider,
)
from drive_player.backends import AudioOutput, OutputFactory
from drive_player.config import Config
from drive_player.console import ConsoleCommandHandler, format_state
from drive_player.errors import PlayerError
from drive_player.library import DriveLibraryStore, TrackMeta
from drive_player.playback import PlaybackEngine, PlayerController, RepeatMode

logger = logging.getLogger(__name__)


def is_audio_file(path: Path) -> bool:
    """True if the file's guessed content type is audio/*."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return bool(mime_type and mime_type.startswith("audio/"))


class DrivePlayer:
    """
    Main DrivePlayer application.

    Orchestrates all components:
    - Credentials (StaticTokenProvider or OAuthTokenProvider)
    - Remote library (DriveLibraryStore)
    - Audio output (LocalAudioOutput or NullAudioOutput)
    - Playback (PlaybackEngine, PlayerController)

    Usage:
        config = load_config(...)
        app = DrivePlayer(config)
        await app.run()
    """

    def __init__(self, config: Config, consent_handler: Optional[ConsentHandler] = None):
        """
        Initialize DrivePlayer.

        Args:
            config: Validated configuration
            consent_handler: Asked for an authorization code on first OAuth sign-in
        """
        self._config = config
        self._consent_handler = consent_handler
        self._is_running = False
        self._shutdown_event = asyncio.Event()
        self._lines: asyncio.Queue[str] = asyncio.Queue()
        self._command_tasks: set[asyncio.Task] = set()

        # Components (initialized in open_library() / start())
        self._credentials: Optional[CredentialProvider] = None
        self._store: Optional[DriveLibraryStore] = None
        self._folder_id: str = config.library.folder_id
        self._output: Optional[AudioOutput] = None
        self._engine: Optional[PlaybackEngine] = None
        self._controller: Optional[PlayerController] = None

    @property
    def controller(self) -> Optional[PlayerController]:
        return self._controller

    @property
    def folder_id(self) -> str:
        return self._folder_id

    @property
    def is_running(self) -> bool:
        return self._is_running

    def _build_credentials(self) -> CredentialProvider:
        auth = self._config.auth
        if auth.access_token:
            logger.debug("Using configured access token")
            return StaticTokenProvider(auth.access_token)
        return OAuthTokenProvider(
            client_id=auth.client_id,
            client_secret=auth.client_secret,
            cache_path=Path(auth.token_cache).expanduser(),
            consent_handler=self._consent_handler,
            timeout=self._config.library.request_timeout,
        )

    async def open_library(self) -> None:
        """
        Open the remote library and resolve the library folder.

        Raises:
            AuthError: If credentials are missing or rejected
            FetchError: If the store cannot be reached
        """
        if self._store is not None:
            return

        self._credentials = self._build_credentials()
        self._store = DriveLibraryStore(
            self._credentials,
            timeout=self._config.library.request_timeout,
        )
        await self._store.__aenter__()

        if not self._folder_id:
            self._folder_id = await self._store.ensure_folder(self._config.library.folder_name)
        logger.info(f"Library folder: {self._config.library.folder_name} ({self._folder_id})")

    async def start(self) -> None:
        """
        Start DrivePlayer and all components.

        Startup order:
        1. Credentials and remote library
        2. Audio output
        3. Playback engine and controller
        4. Initial library listing

        Raises:
            AuthError: If credentials are missing or rejected
            FetchError: If the store cannot be reached
            OutputNotFoundError: If the audio output cannot be opened
        """
        logger.info("Starting DrivePlayer...")

        # 1. Remote library
        await self.open_library()
        assert self._store is not None

        # 2. Audio output
        self._output = await OutputFactory.create_from_config(self._config)
        logger.info(f"Audio output: {self._output.name}")

        # 3. Engine and controller
        player = self._config.player
        self._engine = PlaybackEngine(self._store, self._output)
        self._controller = PlayerController(
            store=self._store,
            engine=self._engine,
            folder_id=self._folder_id,
            restart_threshold_seconds=player.restart_threshold_seconds,
            volume=player.volume,
            repeat_mode=RepeatMode(player.repeat),
            shuffle_on=player.shuffle,
        )

        # 4. Initial listing
        self._controller.set_library(await self._store.list_tracks(self._folder_id))

        self._is_running = True
        logger.info("DrivePlayer ready")

    async def list_tracks(self) -> list[TrackMeta]:
        """List the library folder."""
        await self.open_library()
        assert self._store is not None
        return await self._store.list_tracks(self._folder_id)

    async def upload_files(self, paths: list[str]) -> int:
        """
        Upload audio files to the library folder.

        Files whose guessed content type is not audio are skipped. The
        library is refreshed afterwards if anything was uploaded.

        Returns:
            Number of files uploaded
        """
        await self.open_library()
        assert self._store is not None

        loop = asyncio.get_running_loop()
        uploaded = 0
        for name in paths:
            path = Path(name).expanduser()
            if not is_audio_file(path):
                logger.warning(f"Skipping {path.name}: not an audio file")
                continue
            mime_type, _ = mimetypes.guess_type(path.name)
            try:
                data = await loop.run_in_executor(None, path.read_bytes)
                track = await self._store.upload(
                    self._folder_id, data, path.name, mime_type or "application/octet-stream"
                )
            except OSError as e:
                logger.error(f"Cannot read {path}: {e}")
                continue
            except PlayerError as e:
                logger.error(f"Upload of {path.name} failed: {e}")
                continue
            logger.info(f"Uploaded {track.display_name}")
            uploaded += 1

        if uploaded and self._controller:
            await self._controller.refresh_library()
        return uploaded

    async def stop(self) -> None:
        """
        Stop DrivePlayer and all components.

        Shutdown order (reverse of startup):
        1. Controller, engine and audio output
        2. Remote library session
        """
        logger.info("Stopping DrivePlayer...")
        self._is_running = False

        if self._controller:
            try:
                await self._controller.close()
            except Exception as e:
                logger.warning(f"Error stopping player: {e}")
        elif self._output:
            try:
                await self._output.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting audio output: {e}")

        if self._store:
            try:
                await self._store.close()
            except Exception as e:
                logger.warning(f"Error closing library session: {e}")

        logger.info("DrivePlayer stopped")

    # =========================================================================
    # Interactive Console
    # =========================================================================

    def _read_stdin(self) -> None:
        line = sys.stdin.readline()
        if not line:
            # EOF
            self._shutdown_event.set()
            return
        self._lines.put_nowait(line)

    async def _console_loop(self, console: ConsoleCommandHandler) -> None:
        """
        Dispatch each input line as its own task.

        A command that loads a track does not block the next one, so a later
        selection supersedes a fetch that is still in flight.
        """
        while True:
            line = await self._lines.get()
            task = asyncio.create_task(self._run_command(console, line))
            self._command_tasks.add(task)
            task.add_done_callback(self._command_tasks.discard)

    async def _run_command(self, console: ConsoleCommandHandler, line: str) -> None:
        output = await console.handle_line(line)
        if output:
            print(output, flush=True)
        if console.quit_requested:
            self._shutdown_event.set()

    async def _cancel_commands(self) -> None:
        for task in list(self._command_tasks):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def run(self) -> None:
        """
        Run the interactive player until quit, EOF or a signal.

        Sets up signal handlers for graceful shutdown on SIGINT/SIGTERM.
        """
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Shutdown signal received")
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

        console_task: Optional[asyncio.Task] = None
        reading = False
        try:
            await self.start()
            assert self._controller is not None

            self._controller.on_error(lambda message: print(f"! {message}", flush=True))
            console = ConsoleCommandHandler(self._controller, on_upload=self.upload_files)
            print(f"{len(self._controller.library)} tracks. Type 'help' for commands.")
            print(format_state(self._controller.state), flush=True)

            loop.add_reader(sys.stdin.fileno(), self._read_stdin)
            reading = True
            console_task = asyncio.create_task(self._console_loop(console))

            await self._shutdown_event.wait()

        finally:
            if reading:
                loop.remove_reader(sys.stdin.fileno())
            if console_task:
                console_task.cancel()
                try:
                    await console_task
                except asyncio.CancelledError:
                    pass
            await self._cancel_commands()
            await self.stop()
