import pytest

from liveconfig.core.config.errors import ConfigurationLoadError
from liveconfig.core.config.providers import (
    EnvironmentVariablesProvider,
    JsonFileProvider,
    MemoryProvider,
    ProviderFlags,
)


def test_provider_flags_combine():
    assert ProviderFlags.BOTH == ProviderFlags.JSON | ProviderFlags.MEMORY
    assert not ProviderFlags.NONE
    assert ProviderFlags.BOTH & ProviderFlags.MEMORY


class TestJsonFileProvider:
    def test_loads_flattened_values(self, write_settings):
        path = write_settings({"App": {"Name": "svc", "Port": 80, "Debug": True, "Extra": None}})
        provider = JsonFileProvider(path)
        provider.load()
        assert dict(provider.items()) == {
            "App:Name": "svc",
            "App:Port": "80",
            "App:Debug": "true",
            "App:Extra": "",
        }

    def test_keys_are_case_insensitive(self, write_settings):
        provider = JsonFileProvider(write_settings({"App": {"Name": "svc"}}))
        provider.load()
        assert provider.get("app:name") == "svc"

    def test_optional_missing_file_is_empty(self, content_root):
        provider = JsonFileProvider(content_root / "absent.json")
        provider.load()
        assert len(provider) == 0

    def test_required_missing_file_raises(self, content_root):
        provider = JsonFileProvider(content_root / "absent.json", optional=False)
        with pytest.raises(ConfigurationLoadError):
            provider.load()

    def test_malformed_file_raises(self, write_settings):
        provider = JsonFileProvider(write_settings("{oops"))
        with pytest.raises(ConfigurationLoadError):
            provider.load()

    def test_reload_drops_removed_keys(self, write_settings):
        path = write_settings({"App": {"Name": "svc", "Old": 1}})
        provider = JsonFileProvider(path)
        provider.load()
        write_settings({"App": {"Name": "svc"}})
        provider.load()
        assert provider.get("App:Old") is None


class TestMemoryProvider:
    def test_set_replaces_existing_key_ignoring_case(self):
        provider = MemoryProvider({"App:Name": "a"})
        provider.set("APP:NAME", "b")
        assert dict(provider.items()) == {"App:Name": "b"}

    def test_load_keeps_values(self):
        provider = MemoryProvider()
        provider.set("App:Name", "svc")
        provider.load()
        assert provider.get("App:Name") == "svc"


def test_environment_variables_provider_maps_double_underscore():
    provider = EnvironmentVariablesProvider(
        environ={"LIVECONFIG_App__Name": "svc", "OTHER": "x", "LIVECONFIG_": "empty"}
    )
    provider.load()
    assert dict(provider.items()) == {"App:Name": "svc"}
