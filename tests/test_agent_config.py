from datetime import timedelta

import pytest

from metricsd.agent.config import AgentConfig, load_agent_config


def test_config_from_environment():
    cfg = load_agent_config(
        [],
        {"ADDRESS": "123123", "REPORT_INTERVAL": "33", "POLL_INTERVAL": "22"},
    )
    assert cfg.server_address == "123123"
    assert cfg.report_interval == timedelta(seconds=33)
    assert cfg.poll_interval == timedelta(seconds=22)


def test_defaults():
    cfg = load_agent_config([], {})
    assert cfg == AgentConfig(
        server_address="localhost:8080",
        report_interval=timedelta(seconds=10),
        poll_interval=timedelta(seconds=10),
        key="",
        rate_limit=100,
    )


def test_flags():
    cfg = load_agent_config(
        ["-a", "host:9000", "-r", "5", "-p", "2", "-k", "placeholder", "-l", "3"], {}
    )
    assert cfg == AgentConfig(
        server_address="host:9000",
        report_interval=timedelta(seconds=5),
        poll_interval=timedelta(seconds=2),
        key="placeholder",
        rate_limit=3,
    )


def test_environment_overrides_flags():
    cfg = load_agent_config(
        ["-a", "flag:1", "-l", "3"], {"ADDRESS": "env:2", "RATE_LIMIT": "7"}
    )
    assert cfg.server_address == "env:2"
    assert cfg.rate_limit == 7


def test_empty_environment_values_are_ignored():
    cfg = load_agent_config(["-a", "flag:1"], {"ADDRESS": "", "POLL_INTERVAL": ""})
    assert cfg.server_address == "flag:1"
    assert cfg.poll_interval == timedelta(seconds=10)


@pytest.mark.parametrize("name", ["REPORT_INTERVAL", "POLL_INTERVAL", "RATE_LIMIT"])
def test_malformed_integer_variable_raises(name):
    with pytest.raises(ValueError, match=name):
        load_agent_config([], {name: "abc"})


def test_malformed_flag_exits():
    with pytest.raises(SystemExit) as info:
        load_agent_config(["-r", "abc"], {})
    assert info.value.code == 2