"""
FastAPI server for the alarm engine. Run with run_api_server(app) in a background thread.
Central endpoints: /api/engine/status, /api/engine/test, /api/engine/stop-tone.
Per-plugin routes are mounted from azan_alarm.plugins.<package>.api (get_router(alarm_app))
under /api/components/<package>/.
Docs when enabled: http://<host>:<port>/docs
"""
import importlib
import logging
import pkgutil
import threading
from typing import Any, Dict

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def create_app(alarm_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given AlarmApp instance."""
    app = FastAPI(title="Azan Alarm API", description="Alarm engine, prayer times, alarms and settings")

    @app.get("/api/engine/status")
    def engine_status() -> Dict[str, Any]:
        """Ticker state, tone state, countdown and the last trigger."""
        return alarm_app.call_engine(alarm_app.engine.status)

    @app.post("/api/engine/test")
    def test_alert() -> Dict[str, Any]:
        """Play the alert tone and send a test notification."""
        alarm_app.call_engine(alarm_app.engine.test_alert)
        return {"status": "ok"}

    @app.post("/api/engine/stop-tone")
    def stop_tone() -> Dict[str, Any]:
        alarm_app.call_engine(alarm_app.engine.stop_tone)
        return {"status": "ok"}

    # Mount per-plugin API routers from azan_alarm.plugins.<name>.api (get_router(alarm_app))
    try:
        plugins_pkg = importlib.import_module("azan_alarm.plugins")
        for _mod, name, is_pkg in pkgutil.iter_modules(plugins_pkg.__path__):
            if not is_pkg:
                continue
            try:
                api_module = importlib.import_module(f"azan_alarm.plugins.{name}.api")
            except ImportError:
                continue
            if not hasattr(api_module, "get_router") or not callable(api_module.get_router):
                continue
            try:
                router = api_module.get_router(alarm_app)
                if router is not None:
                    app.include_router(router, prefix=f"/api/components/{name}")
            except Exception as e:
                logger.warning(f"Failed to mount API router for plugin {name}: {e}", exc_info=True)
    except Exception as e:
        logger.warning(f"Plugin API discovery failed: {e}", exc_info=True)

    return app


def run_api_server(alarm_app: Any) -> None:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = alarm_app.config.data.get("api") or {}
    enabled = api_config.get("enabled", False)
    logger.info(f"API config: enabled={enabled}, config_file={alarm_app.config.config_file}")
    if not enabled:
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(alarm_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, name="azan-alarm-api", daemon=True)
    thread.start()
    logger.info("API server thread started.")
