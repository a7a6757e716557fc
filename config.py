import argparse
import logging
import os

from subscription import Subscription

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 1883
DEFAULT_TOPIC = "#"
DEFAULT_QOS = 2
DEFAULT_KEEP_ALIVE = 60  # seconds
DEFAULT_REFRESH_INTERVAL = 500  # milliseconds
DEFAULT_HISTORY_LENGTH = 1000  # messages kept per topic
DEFAULT_LOCK_TIMEOUT = 0.1  # seconds the UI waits for the history
DEFAULT_RECONNECT_DELAY = 5  # seconds

ENV_HOST = "MQTTVIEW_HOST"
ENV_PORT = "MQTTVIEW_PORT"
ENV_USERNAME = "MQTTVIEW_USERNAME"
ENV_PASSWORD = "MQTTVIEW_PASSWORD"


class Config:
    def __init__(self, host=DEFAULT_HOST, port=DEFAULT_PORT, topics=None, qos=DEFAULT_QOS, client_id=None,
                 username=None, password=None, keep_alive=DEFAULT_KEEP_ALIVE,
                 refresh_interval=DEFAULT_REFRESH_INTERVAL, history_length=DEFAULT_HISTORY_LENGTH,
                 lock_timeout=DEFAULT_LOCK_TIMEOUT, reconnect_delay=DEFAULT_RECONNECT_DELAY, verbosity=0):
        self.host = host
        self.port = port
        self.topics = list(topics) if topics else [DEFAULT_TOPIC]
        self.qos = qos
        self.client_id = client_id
        self.username = username
        self.password = password
        self.keep_alive = keep_alive
        self.refresh_interval = refresh_interval
        self.history_length = history_length
        self.lock_timeout = lock_timeout
        self.reconnect_delay = reconnect_delay
        self.verbosity = verbosity

    @property
    def subscriptions(self):
        return [Subscription(topic, self.qos) for topic in self.topics]

    @property
    def log_level(self):
        if self.verbosity >= 2:
            return logging.DEBUG
        if self.verbosity == 1:
            return logging.INFO
        return logging.WARNING

    def __repr__(self):
        # Password stays out of logs
        return f"<Config host={self.host} port={self.port} topics={self.topics} qos={self.qos}>"


def _positive_int(value):
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive number")
    return number


def _port(value):
    number = int(value)
    if not 1 <= number <= 65535:
        raise argparse.ArgumentTypeError(f"{value} is not a valid port")
    return number


def build_parser(environ=None):
    environ = os.environ if environ is None else environ

    parser = argparse.ArgumentParser(
        prog="mqttview",
        description="Subscribe to an MQTT broker and browse the received topics as a tree."
    )
    parser.add_argument("topic", nargs="*", default=[DEFAULT_TOPIC],
                        help=f"Topic filters to subscribe to (default: {DEFAULT_TOPIC})")
    parser.add_argument("-H", "--host", default=environ.get(ENV_HOST, DEFAULT_HOST),
                        help=f"Host of the MQTT broker (env: {ENV_HOST})")
    parser.add_argument("-p", "--port", type=_port, default=environ.get(ENV_PORT, DEFAULT_PORT),
                        help=f"Port of the MQTT broker (env: {ENV_PORT})")
    parser.add_argument("-u", "--username", default=environ.get(ENV_USERNAME),
                        help=f"Username to authenticate with (env: {ENV_USERNAME})")
    parser.add_argument("-P", "--password", default=environ.get(ENV_PASSWORD),
                        help=f"Password to authenticate with (env: {ENV_PASSWORD})")
    parser.add_argument("--client-id", help="Client identifier, a random one is used when omitted")
    parser.add_argument("--qos", type=int, choices=(0, 1, 2), default=DEFAULT_QOS,
                        help="Maximum QoS to subscribe with")
    parser.add_argument("--keep-alive", type=_positive_int, default=DEFAULT_KEEP_ALIVE,
                        help="Keep alive interval in seconds")
    parser.add_argument("--refresh-interval", type=_positive_int, default=DEFAULT_REFRESH_INTERVAL,
                        help="Redraw interval of the view in milliseconds")
    parser.add_argument("--history-length", type=_positive_int, default=DEFAULT_HISTORY_LENGTH,
                        help="Messages kept per topic")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log more details, repeat for debug output")
    return parser


def parse_args(argv=None, environ=None):
    args = build_parser(environ).parse_args(argv)
    return Config(
        host=args.host,
        port=args.port,
        topics=args.topic,
        qos=args.qos,
        client_id=args.client_id,
        username=args.username,
        password=args.password,
        keep_alive=args.keep_alive,
        refresh_interval=args.refresh_interval,
        history_length=args.history_length,
        verbosity=args.verbose
    )
