"""Tests for otel_decorator.config — process-wide naming settings."""

import asyncio
import logging
import threading

import pytest

from otel_decorator import config
from otel_decorator.config import (
    ConfigurationError,
    Settings,
    configure,
    get_settings,
    override_settings,
    reset_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "OTEL_DECORATOR_ATTR_JOINER",
        "OTEL_DECORATOR_ATTR_PREFIX",
        "OTEL_DECORATOR_TRACER_NAME",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


class TestDefaults:
    def test_defaults(self):
        settings = get_settings()
        assert settings.attr_joiner == "_"
        assert settings.attr_prefix == ""
        assert settings.tracer_name == "otel_decorator"

    def test_settings_are_immutable(self):
        with pytest.raises(AttributeError):
            get_settings().attr_joiner = "."  # type: ignore[misc]

    def test_snapshot_is_cached(self):
        assert get_settings() is get_settings()


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OTEL_DECORATOR_ATTR_JOINER", ".")
        monkeypatch.setenv("OTEL_DECORATOR_ATTR_PREFIX", "app.")
        monkeypatch.setenv("OTEL_DECORATOR_TRACER_NAME", "billing")
        settings = get_settings()
        assert settings == Settings(attr_joiner=".", attr_prefix="app.", tracer_name="billing")

    def test_blank_tracer_name_uses_default(self, monkeypatch):
        monkeypatch.setenv("OTEL_DECORATOR_TRACER_NAME", "  ")
        assert get_settings().tracer_name == "otel_decorator"

    def test_reset_rereads_environment(self, monkeypatch):
        assert get_settings().attr_prefix == ""
        monkeypatch.setenv("OTEL_DECORATOR_ATTR_PREFIX", "svc_")
        assert get_settings().attr_prefix == ""
        reset_settings()
        assert get_settings().attr_prefix == "svc_"

    def test_load_is_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="otel_decorator"):
            get_settings()
        assert "Loaded otel_decorator settings" in caplog.text


class TestConfigure:
    def test_only_given_fields_change(self):
        configure(attr_prefix="my_")
        settings = configure(attr_joiner=".")
        assert settings.attr_prefix == "my_"
        assert settings.attr_joiner == "."
        assert get_settings() is settings

    def test_empty_strings_are_valid(self):
        assert configure(attr_joiner="").attr_joiner == ""

    def test_rejects_non_string_joiner(self):
        with pytest.raises(ConfigurationError, match="attr_joiner"):
            configure(attr_joiner=1)  # type: ignore[arg-type]

    def test_rejects_non_string_prefix(self):
        with pytest.raises(ConfigurationError, match="attr_prefix"):
            configure(attr_prefix=["x"])  # type: ignore[arg-type]

    def test_rejects_empty_tracer_name(self):
        with pytest.raises(ConfigurationError, match="tracer_name"):
            configure(tracer_name="")

    def test_failed_configure_keeps_previous(self):
        configure(attr_prefix="kept_")
        with pytest.raises(ConfigurationError):
            configure(attr_joiner=None, attr_prefix=3)  # type: ignore[arg-type]
        assert get_settings().attr_prefix == "kept_"

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestOverrideSettings:
    def test_override_is_restored(self):
        configure(attr_prefix="outer_")
        with override_settings(attr_prefix="inner_") as settings:
            assert settings.attr_prefix == "inner_"
            assert get_settings().attr_prefix == "inner_"
        assert get_settings().attr_prefix == "outer_"

    def test_override_restored_after_error(self):
        with pytest.raises(RuntimeError):
            with override_settings(attr_joiner="."):
                raise RuntimeError("boom")
        assert get_settings().attr_joiner == "_"

    def test_override_leaves_process_settings_alone(self):
        with override_settings(attr_joiner="."):
            assert config._global_settings.attr_joiner == "_"
        assert get_settings().attr_joiner == "_"

    def test_nested_overrides_stack(self):
        with override_settings(attr_prefix="app."):
            with override_settings(attr_joiner=".") as inner:
                assert inner.attr_prefix == "app."
                assert inner.attr_joiner == "."
            assert get_settings().attr_joiner == "_"
            assert get_settings().attr_prefix == "app."

    def test_configure_inside_override_survives_exit(self):
        with override_settings(attr_prefix="temp_"):
            configure(attr_joiner=".")
            assert get_settings().attr_prefix == "temp_"
        assert get_settings().attr_joiner == "."
        assert get_settings().attr_prefix == ""

    def test_override_not_visible_to_other_threads(self):
        seen = []
        with override_settings(attr_prefix="mine_"):
            worker = threading.Thread(target=lambda: seen.append(get_settings().attr_prefix))
            worker.start()
            worker.join()
        assert seen == [""]

    def test_override_not_visible_to_other_tasks(self):
        async def read_prefix():
            return get_settings().attr_prefix

        async def main():
            other = asyncio.ensure_future(read_prefix())
            with override_settings(attr_prefix="mine_"):
                await asyncio.sleep(0)
                mine = get_settings().attr_prefix
            return mine, await other

        assert asyncio.run(main()) == ("mine_", "")

    def test_rejects_unknown_option(self):
        with pytest.raises(TypeError):
            with override_settings(colour="blue"):
                pass
