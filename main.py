import logging
import signal
import sys

from PyQt5.QtWidgets import QApplication

from app import App
from client import MqttClient
from config import parse_args
from gui import MqttViewerWindow
from mqtt_history import MqttHistory

logger = logging.getLogger(__name__)


def main(argv=None):
    config = parse_args(argv)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logger.info("Starting with %r", config)

    history = MqttHistory(config.history_length)
    client = MqttClient(
        config.host,
        config.port,
        config.subscriptions,
        history,
        client_id=config.client_id,
        username=config.username,
        password=config.password,
        keep_alive=config.keep_alive,
        reconnect_delay=config.reconnect_delay
    )
    client.start()

    # Qt never returns to Python for KeyboardInterrupt, let Ctrl+C terminate
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    qt_app = QApplication(sys.argv[:1])
    window = MqttViewerWindow(App(config, history, client), config.refresh_interval)
    window.show()
    try:
        exit_code = qt_app.exec_()
    finally:
        client.stop()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
