import uvicorn
from Config.Settings import load_settings, ConfigError, NTFY_URL_VAR
from DatabaseManagers.DetectionStore import DetectionStore, DetectionStoreError
from Notifiers.NtfyNotifier import NtfyNotifier
from SpeedEvaluators.SpeedEvaluator import SpeedEvaluator
from Utils.Logger import get_logger
from WebServer.api_server import create_app


def main():
    """Main function to run the Kamerafyr server"""
    try:
        settings = load_settings()
    except ConfigError as e:
        get_logger("kamerafyr").error(f"could not load configuration: {e}")
        return

    logger = get_logger("kamerafyr", level=settings.log_level, log_file=settings.log_file)

    if not settings.ntfy_url:
        logger.error(f"could not load env var {NTFY_URL_VAR}")
        return

    logger.info(f"initializing database path={settings.db_path}")
    try:
        store = DetectionStore(settings.db_path)
    except DetectionStoreError as e:
        logger.error(f"could not open database: {e}")
        return

    notifier = NtfyNotifier(settings.ntfy_url, timeout=settings.ntfy_timeout)
    evaluator = SpeedEvaluator(
        store,
        notifier,
        logger=get_logger(SpeedEvaluator.__module__, level=settings.log_level, log_file=settings.log_file),
        camera_distance_meters=settings.camera_distance_meters,
        speed_limit_kmh=settings.speed_limit_kmh,
        freshness_window_seconds=settings.freshness_window_seconds,
    )
    app = create_app(evaluator, logger=logger)

    logger.info(f"starting server host={settings.host} port={settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
