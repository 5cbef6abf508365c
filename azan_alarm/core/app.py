from typing import Any, Callable, Dict, Optional
import logging
import signal
import sys
import threading
from pathlib import Path

from .config import Config
from .db import init_db, dispose_db
from .task_manager import TaskManager
from azan_alarm.engine.engine import AlarmEngine
from azan_alarm.engine.notifier import NotificationCapability, NotificationDispatcher, PlyerNotificationCapability
from azan_alarm.engine.state import EngineState
from azan_alarm.engine.tone import PygameToneOutput, ToneEngine, ToneOutput
from azan_alarm.plugins.alarms.service import AlarmService
from azan_alarm.plugins.prayer.prayer_base import get_backend
from azan_alarm.plugins.prayer.service import PrayerTimeProvider
from azan_alarm.plugins.settings.service import SettingsService

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


class AlarmApp:
    """
    Wires config, database, services and the alarm engine. The engine lives on the
    TaskManager loop; everything here that touches it goes through call_engine() or
    TaskManager.call_soon/submit.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        watch_config: bool = True,
        configure_logging: bool = True,
        tone_output_factory: Optional[Callable[[], ToneOutput]] = None,
        notification_capability: Optional[NotificationCapability] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        if configure_logging:
            self._setup_logging()

        # Tables must exist before the services are used
        init_db(self.config.data)

        self.task_manager = TaskManager()
        self.settings_service = SettingsService()
        self.alarm_service = AlarmService()
        self.prayer_provider = PrayerTimeProvider.from_config(
            self.config.get("prayer"),
            settings_getter=lambda: self.state.settings,
        )
        self.state = EngineState(self.prayer_provider, self.alarm_service, self.settings_service)

        audio_config = self.config.get("audio")
        notifications_config = self.config.get("notifications")
        if tone_output_factory is None:
            volume = float(audio_config.get("volume", 1.0))
            tone_output_factory = lambda: PygameToneOutput(volume=volume)  # noqa: E731
        if notification_capability is None:
            notification_capability = PlyerNotificationCapability.from_config(self.config.data)

        self.engine = AlarmEngine(
            self.state,
            ToneEngine(tone_output_factory),
            NotificationDispatcher(notification_capability, icon=notifications_config.get("icon", "")),
            audio_enabled=bool(audio_config.get("enabled", True)),
            tick_interval=float(self.config.get("engine").get("tick_interval", 1.0)),
        )

        self.alarm_service.register_change_callback(self._on_alarms_changed)
        self.settings_service.register_change_callback(self._on_settings_changed)

        self._stop_event = threading.Event()
        self._stopped = False

    def _setup_logging(self) -> None:
        """Configure logging to write to both file and stdout"""
        logging_config = self.config.get("logging")
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        root_logger.setLevel(getattr(logging, str(logging_config["level"]).upper(), logging.INFO))

        formatter = logging.Formatter(LOG_FORMAT)

        log_file = logging_config.get("file")
        if log_file:
            Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(Path(log_file).expanduser())
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Azan alarm starting...")

    def call_engine(self, method: Callable[..., Any], *args: Any, timeout: float = 5.0) -> Any:
        """Run an engine method on the loop thread and return its result. Not for use on the loop thread."""
        async def _call():
            return method(*args)
        return self.task_manager.run(_call(), timeout=timeout)

    def _on_alarms_changed(self) -> None:
        self.task_manager.submit(self.state.refresh_alarms())

    def _on_settings_changed(self) -> None:
        # Calculation method may have changed, so prayer data is reloaded too
        self.task_manager.submit(self.state.refresh_all())

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Called on the watchdog thread after config.yaml changes."""
        self.logger.info("Handling config change")
        self.task_manager.call_soon(self._apply_config)

    def _apply_config(self) -> None:
        logging.getLogger().setLevel(
            getattr(logging, str(self.config.get("logging")["level"]).upper(), logging.INFO)
        )
        try:
            self.prayer_provider.backend = get_backend(self.config.get("prayer"))
        except ValueError as e:
            self.logger.error(f"Keeping previous prayer backend: {e}")
        self.engine.audio_enabled = bool(self.config.get("audio").get("enabled", True))
        self.engine.request_refresh()

    def start(self, start_api: bool = True) -> None:
        """Load state, start ticking and (optionally) serve the HTTP API."""
        self.task_manager.run(self.state.refresh_all(), timeout=60)
        self.call_engine(self.engine.start)
        if start_api:
            from azan_alarm.api.server import run_api_server
            try:
                run_api_server(self)
            except Exception as e:
                self.logger.warning(f"API server not started: {e}")

    def request_stop(self, *_args) -> None:
        self._stop_event.set()

    def run(self) -> None:
        """Run until SIGINT/SIGTERM."""
        signal.signal(signal.SIGINT, self.request_stop)
        signal.signal(signal.SIGTERM, self.request_stop)
        self.start()
        try:
            while not self._stop_event.is_set():
                self._stop_event.wait(1.0)
        finally:
            self.stop()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self.logger.info("Shutting down")
        try:
            self.call_engine(self.engine.stop)
            self.call_engine(self.engine.tone.close)
        except Exception as e:
            self.logger.error(f"Error stopping engine: {e}")
        self.task_manager.stop()
        self.config.cleanup()
        dispose_db()
