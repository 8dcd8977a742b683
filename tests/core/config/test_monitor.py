"""
Tests for options monitors and writable updates.

Each test builds its own configuration root over files in a temporary
content root; nothing touches the working directory.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Optional

import pytest

from liveconfig.core.config.errors import (
    CircularReferenceError,
    InvalidSectionKeyError,
    UnsupportedValueError,
)
from liveconfig.core.config.monitor import OptionsMonitor, WritableOptionsMonitor
from liveconfig.core.config.providers import ProviderFlags
from liveconfig.core.config.registration import get_writable
from liveconfig.core.config.root import create_default_configuration
from liveconfig.core.utils.paths import HostEnvironment
from tests.conftest import read_json


@dataclass
class AppOptions:
    Name: Optional[str] = None


@dataclass
class LimitOptions:
    Max: int = 10


@dataclass
class ServiceOptions:
    Port: int = 80
    Limits: Optional[LimitOptions] = None


@dataclass(frozen=True)
class FrozenOptions:
    Name: str = ""


class Loop:
    def __init__(self):
        self.Self = self


def set_name(value: str):
    def apply(options):
        options.Name = value

    return apply


@pytest.fixture
def make_monitor(host):
    def _make(options_type=AppOptions, section="App", memory=True, target_host=None):
        target_host = target_host or host
        root = create_default_configuration(target_host, memory=memory)
        return WritableOptionsMonitor(options_type, root, section, host=target_host)

    return _make


class TestUpdate:
    def test_json_update_appends_section_and_reloads(self, write_settings, make_monitor):
        path = write_settings({"Other": {"X": 1}})
        monitor = make_monitor()

        assert monitor.update(set_name("svc"), ProviderFlags.JSON) is True
        assert read_json(path) == {"Other": {"X": 1}, "App": {"Name": "svc"}}
        assert monitor.current_value.Name == "svc"

    def test_memory_update_without_file(self, make_monitor, content_root):
        monitor = make_monitor()

        assert monitor.update(set_name("svc"), ProviderFlags.MEMORY) is True
        assert monitor.current_value.Name == "svc"
        assert monitor.root["App:Name"] == "svc"
        assert not (content_root / "appsettings.json").exists()

    def test_memory_update_without_store_fails(self, write_settings, make_monitor, caplog):
        path = write_settings({"Other": 1})
        before = path.read_bytes()
        monitor = make_monitor(memory=False)

        with caplog.at_level(logging.WARNING, logger="liveconfig"):
            assert monitor.update(set_name("svc"), ProviderFlags.MEMORY) is False
        assert "no in-memory provider" in caplog.text
        assert path.read_bytes() == before
        assert monitor.current_value.Name is None

    def test_both_without_store_still_writes_file(self, write_settings, make_monitor):
        path = write_settings({"Other": 1})
        monitor = make_monitor(memory=False)

        assert monitor.update(set_name("svc"), ProviderFlags.BOTH) is False
        assert read_json(path)["App"] == {"Name": "svc"}
        assert monitor.current_value.Name == "svc"

    def test_both_with_store_succeeds(self, write_settings, make_monitor):
        path = write_settings({})
        monitor = make_monitor()

        assert monitor.update(set_name("svc"), ProviderFlags.BOTH) is True
        assert read_json(path) == {"App": {"Name": "svc"}}
        assert monitor.current_value.Name == "svc"

    def test_none_requested_returns_false(self, write_settings, make_monitor):
        path = write_settings({"Other": 1})
        before = path.read_bytes()
        monitor = make_monitor()

        assert monitor.update(set_name("svc"), ProviderFlags.NONE) is False
        assert path.read_bytes() == before
        assert monitor.current_value.Name is None

    def test_failed_update_leaves_snapshot_untouched(self, make_monitor):
        monitor = make_monitor()
        snapshot = monitor.current_value

        assert monitor.update(set_name("svc"), ProviderFlags.JSON) is False
        assert monitor.current_value is snapshot
        assert snapshot.Name is None

    def test_successful_update_does_not_mutate_previous_snapshot(self, write_settings, make_monitor):
        write_settings({"App": {"Name": "old"}})
        monitor = make_monitor()
        snapshot = monitor.current_value

        assert monitor.update(set_name("new"), ProviderFlags.JSON) is True
        assert snapshot.Name == "old"
        assert monitor.current_value.Name == "new"

    def test_replacement_value_for_frozen_options(self, write_settings, make_monitor):
        path = write_settings({})
        monitor = make_monitor(FrozenOptions)

        result = monitor.update(lambda o: dataclasses.replace(o, Name="svc"), ProviderFlags.JSON)
        assert result is True
        assert read_json(path) == {"App": {"Name": "svc"}}
        assert monitor.current_value == FrozenOptions(Name="svc")

    def test_nested_memory_update(self, make_monitor):
        monitor = make_monitor(ServiceOptions, section="Service")

        def apply(options):
            options.Limits = LimitOptions(Max=3)

        assert monitor.update(apply, ProviderFlags.MEMORY) is True
        assert monitor.root["Service:Limits:Max"] == "3"
        assert monitor.current_value.Limits == LimitOptions(Max=3)

    def test_cycle_propagates(self, write_settings, make_monitor):
        write_settings({})
        monitor = make_monitor()
        with pytest.raises(CircularReferenceError):
            monitor.update(lambda o: Loop(), ProviderFlags.JSON)

    def test_unsupported_member_leaves_memory_store_untouched(self, make_monitor):
        monitor = make_monitor()
        with pytest.raises(UnsupportedValueError) as excinfo:
            monitor.update(lambda o: {"Name": "svc", "Blob": b"raw"}, ProviderFlags.MEMORY)
        assert excinfo.value.path == "App:Blob"
        assert "App:Name" not in monitor.root
        assert monitor.current_value.Name is None

    def test_environment_file_is_target(self, content_root, write_settings, make_monitor):
        base = write_settings({"App": {"Name": "base"}})
        env_file = write_settings({"App": {"Name": "dev"}}, name="appsettings.Development.json")
        dev = HostEnvironment(environment_name="Development", content_root=content_root)
        monitor = make_monitor(target_host=dev)

        assert monitor.physical_path == env_file.resolve()
        assert monitor.update(set_name("svc"), ProviderFlags.JSON) is True
        assert read_json(env_file) == {"App": {"Name": "svc"}}
        assert read_json(base) == {"App": {"Name": "base"}}

    def test_update_async(self, write_settings, make_monitor):
        path = write_settings({"Other": {"X": 1}})
        monitor = make_monitor()

        assert asyncio.run(monitor.update_async(set_name("svc"), ProviderFlags.BOTH)) is True
        assert read_json(path) == {"Other": {"X": 1}, "App": {"Name": "svc"}}
        assert monitor.current_value.Name == "svc"

    def test_update_async_missing_file(self, make_monitor):
        monitor = make_monitor()
        assert asyncio.run(monitor.update_async(set_name("svc"), ProviderFlags.JSON)) is False
        assert monitor.current_value.Name is None


class TestNotifications:
    def test_listeners_receive_new_value(self, write_settings, make_monitor):
        write_settings({})
        monitor = make_monitor()
        seen = []

        def broken(value, section):
            raise RuntimeError("listener failure")

        monitor.on_change(broken)
        monitor.on_change(lambda value, section: seen.append((value.Name, section)))
        monitor.update(set_name("svc"), ProviderFlags.JSON)
        assert seen == [("svc", "App")]

    def test_other_monitors_observe_update(self, write_settings, make_monitor):
        write_settings({})
        writer = make_monitor()
        reader = OptionsMonitor(AppOptions, writer.root, "app")
        assert reader.current_value.Name is None

        writer.update(set_name("svc"), ProviderFlags.JSON)
        assert reader.current_value.Name == "svc"

    def test_unsubscribed_listener_is_not_called(self, make_monitor):
        monitor = make_monitor()
        seen = []
        unsubscribe = monitor.on_change(lambda value, section: seen.append(value))
        unsubscribe()
        monitor.update(set_name("svc"), ProviderFlags.MEMORY)
        assert seen == []

    def test_binding_failure_keeps_previous_value(self, write_settings, make_monitor):
        write_settings({"Service": {"Port": 81}})
        monitor = make_monitor(ServiceOptions, section="Service")
        assert monitor.current_value.Port == 81

        write_settings({"Service": {"Port": "not a number"}})
        monitor.reload()
        assert monitor.current_value.Port == 81

    def test_closed_monitor_stops_following(self, write_settings, make_monitor):
        write_settings({"App": {"Name": "one"}})
        monitor = make_monitor()
        assert monitor.current_value.Name == "one"
        monitor.close()
        write_settings({"App": {"Name": "two"}})
        monitor.root.reload()
        assert monitor.current_value.Name == "one"


class TestConstruction:
    @pytest.mark.parametrize("key", ["", "   ", "App:Sub"])
    def test_invalid_section_key(self, make_monitor, key):
        with pytest.raises(InvalidSectionKeyError):
            make_monitor(section=key)

    def test_registers_itself(self, make_monitor):
        monitor = make_monitor()
        assert get_writable("app") is monitor

    def test_dict_options_type(self, write_settings, make_monitor):
        write_settings({"App": {"Name": "svc", "Limits": {"Max": 2}}})
        monitor = make_monitor(dict)
        assert monitor.current_value == {"Name": "svc", "Limits": {"Max": "2"}}


@dataclass
class Defaults:
    Tags: list = field(default_factory=list)


def test_default_instance_when_section_absent(make_monitor):
    monitor = make_monitor(Defaults, section="Missing")
    assert monitor.current_value == Defaults()
