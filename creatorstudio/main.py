"""Main application entry point for creatorstudio."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.live import Live

from . import __version__
from .config import StudioConfig
from .errors import CaptureError, InvalidState
from .models.session import RecordingResult, SessionInfo
from .services.session_controller import SessionController
from .storage.file_manager import FileManager
from .storage.resilience_store import FileResilienceStore
from .transcription.capability import probe_recognition
from .ui.keyboard_input import create_input_handler
from .ui.recording_screen import RecordingScreen, format_duration

logger = logging.getLogger(__name__)


class Studio:
    """Wires configuration, storage, recognition and the session controller together."""

    def __init__(self, config: StudioConfig, console: Optional[Console] = None):
        self.config = config
        self.console = console or Console()
        self.file_manager = FileManager(config.get_data_directory())
        self.store = FileResilienceStore(str(self.file_manager.checkpoints_dir))
        self.controller: Optional[SessionController] = None
        self._quit: Optional[asyncio.Event] = None
        self._screen: Optional[RecordingScreen] = None
        self._tasks = set()

    def init(self) -> None:
        logger.info("Initializing services...")
        self.store.open()
        capability = probe_recognition(self.config)
        self.controller = SessionController.from_config(self.config, self.store, capability)
        logger.info(f"Audio settings: {self.config.get('audio.sample_rate')}Hz, "
                    f"{self.config.get('audio.channels')} channels, "
                    f"{self.config.get('audio.timeslice_seconds')}s chunks; "
                    f"transcription {'available' if capability.available else 'unavailable'}")

    def cleanup(self) -> None:
        self.store.close()

    def save(self, result: RecordingResult) -> Optional[SessionInfo]:
        if result.session_id is None:
            return None
        return self.file_manager.save_recording(result)

    async def run_auto(self, duration: int) -> SessionInfo:
        """Record for ``duration`` seconds, stop, save and report."""
        self.console.print(f"🤖 Auto mode: recording for {duration}s", style="blue")
        await self.controller.start()
        if self.controller.warning:
            self.console.print(f"⚠️  {self.controller.warning}", style="yellow")
        await asyncio.sleep(duration)
        result = await self.controller.stop()
        info = self.save(result)
        self._report(info, result)
        return info

    def _report(self, info: Optional[SessionInfo], result: RecordingResult) -> None:
        if info is None:
            self.console.print("Nothing was recorded", style="yellow")
            return
        path = self.file_manager.get_session_path(info.session_id)
        self.console.print(f"✅ Saved {info.session_id} to {path}", style="green")
        self.console.print(f"   Duration: {format_duration(result.duration)}  "
                           f"Audio: {info.audio_file or 'none'} ({info.file_size_bytes} bytes, {info.mime_type})")
        if result.transcript:
            self.console.print(f"📝 {result.transcript}")

    async def run_interactive(self) -> None:
        loop = asyncio.get_running_loop()
        self._quit = asyncio.Event()
        self._screen = RecordingScreen(self.controller)

        def on_key(key: str) -> bool:
            loop.call_soon_threadsafe(self._handle_key, key)
            return key != "q"

        input_handler = create_input_handler(on_key)
        input_handler.start()
        try:
            with Live(self._screen.render(), console=self.console, refresh_per_second=10) as live:
                while not self._quit.is_set():
                    live.update(self._screen.render())
                    await asyncio.sleep(0.1)
                if self.controller.is_recording:
                    await self._stop_and_save()
                live.update(self._screen.render())
        finally:
            input_handler.stop()

    def _handle_key(self, key: str) -> None:
        if key == "r":
            self._spawn(self._start())
        elif key == "p":
            if self.controller.is_paused:
                self.controller.resume()
            else:
                self.controller.pause()
        elif key == "s":
            self._spawn(self._stop_and_save())
        elif key == "q":
            self._quit.set()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _start(self) -> None:
        try:
            await self.controller.start()
            self._screen.message = None
        except InvalidState:
            self._screen.message = "Already recording"
        except CaptureError:
            # The controller already holds the user-facing error message
            pass

    async def _stop_and_save(self) -> None:
        result = await self.controller.stop()
        info = self.save(result)
        if info is not None:
            self._screen.last_saved = info
            self._screen.message = f"Saved to {self.file_manager.get_session_path(info.session_id)}"


def setup_logging(config: StudioConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/creatorstudio.log')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info(f"creatorstudio {__version__} starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="creatorstudio",
        description="creatorstudio - record and transcribe content ideas",
        epilog="Commands: r=Start recording, p=Pause/resume, s=Stop and save, q=Quit"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )
    parser.add_argument(
        "--auto",
        action="store_true",
        help="Run in automatic mode: record for the given duration, then stop, save and exit"
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=10,
        help="Duration in seconds for auto mode recording (default: 10)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"creatorstudio v{__version__}"
    )
    return parser


def main(argv=None) -> None:
    """Main entry point for creatorstudio."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        config = StudioConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"❌ Configuration error: {e}", style="red")
        sys.exit(1)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    studio = Studio(config, console)
    try:
        studio.init()
        if args.auto:
            asyncio.run(studio.run_auto(args.duration))
        else:
            asyncio.run(studio.run_interactive())
    except KeyboardInterrupt:
        console.print("\n👋 Goodbye!")
    except CaptureError as e:
        console.print(f"❌ {studio.controller.error or e}", style="red")
        logger.error(f"Could not start recording: {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"❌ Error: {e}", style="red")
        logger.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        studio.cleanup()


if __name__ == "__main__":
    main()
