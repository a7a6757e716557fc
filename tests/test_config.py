import logging

import pytest

from config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TOPIC, parse_args


class TestParseArgs:
    def test_defaults(self):
        config = parse_args([], environ={})

        assert config.host == DEFAULT_HOST
        assert config.port == DEFAULT_PORT
        assert config.topics == [DEFAULT_TOPIC]
        assert config.username is None
        assert config.log_level == logging.WARNING

    def test_options(self):
        config = parse_args(
            ["-H", "broker", "-p", "8883", "--qos", "1", "-vv", "home/#", "office/+"],
            environ={}
        )

        assert config.host == "broker"
        assert config.port == 8883
        assert config.topics == ["home/#", "office/+"]
        assert [(s.topic, s.qos) for s in config.subscriptions] == [("home/#", 1), ("office/+", 1)]
        assert config.log_level == logging.DEBUG

    def test_environment(self):
        environ = {
            "MQTTVIEW_HOST": "env-broker",
            "MQTTVIEW_PORT": "1884",
            "MQTTVIEW_USERNAME": "user",
            "MQTTVIEW_PASSWORD": "secret",
        }

        config = parse_args([], environ=environ)

        assert (config.host, config.port) == ("env-broker", 1884)
        assert (config.username, config.password) == ("user", "secret")
        assert "secret" not in repr(config)

    def test_arguments_override_environment(self):
        config = parse_args(["--host", "cli-broker"], environ={"MQTTVIEW_HOST": "env-broker"})

        assert config.host == "cli-broker"

    @pytest.mark.parametrize("argv", [
        ["--port", "0"],
        ["--port", "70000"],
        ["--qos", "3"],
        ["--refresh-interval", "0"],
        ["--history-length", "-1"],
    ])
    def test_invalid_values(self, argv):
        with pytest.raises(SystemExit):
            parse_args(argv, environ={})
