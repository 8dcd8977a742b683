import logging
from dataclasses import dataclass

import pytest

from liveconfig.core.config.monitor import WritableOptionsMonitor
from liveconfig.core.config.registration import (
    configure_writable,
    get_writable,
    unregister_writable,
)
from liveconfig.core.config.root import create_default_configuration


@dataclass
class CacheOptions:
    Size: int = 0


def test_configure_writable_registers_monitor(host, write_settings):
    write_settings({"Cache": {"Size": 5}}, name="custom.json")
    root = create_default_configuration(host, base_file_name="custom.json")
    monitor = configure_writable(CacheOptions, root, "Cache", host=host, base_file_name="custom.json")

    assert isinstance(monitor, WritableOptionsMonitor)
    assert get_writable("CACHE") is monitor
    assert monitor.physical_path.name == "custom.json"
    assert monitor.current_value.Size == 5


def test_get_writable_unknown_section():
    with pytest.raises(KeyError):
        get_writable("Nope")


def test_replacing_monitor_logs_warning(host, caplog):
    root = create_default_configuration(host)
    first = WritableOptionsMonitor(CacheOptions, root, "Cache", host=host)
    with caplog.at_level(logging.WARNING, logger="liveconfig"):
        second = WritableOptionsMonitor(CacheOptions, root, "cache", host=host)
    assert get_writable("Cache") is second
    assert first is not second
    assert "Replacing writable monitor" in caplog.text


def test_unregister_writable(host):
    root = create_default_configuration(host)
    monitor = WritableOptionsMonitor(CacheOptions, root, "Cache", host=host)
    assert unregister_writable("cache") is monitor
    assert unregister_writable("cache") is None


def test_unregistered_monitor_is_not_tracked(host):
    root = create_default_configuration(host)
    WritableOptionsMonitor(CacheOptions, root, "Cache", host=host, register=False)
    with pytest.raises(KeyError):
        get_writable("Cache")
