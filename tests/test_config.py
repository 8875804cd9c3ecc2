# tests/test_config.py
"""
Tests for configuration presets and precedence.
"""

import threading

import pytest

from uiauto_healing.config import HealingConfig, available_presets


class TestHealingConfig:
    """Tests for HealingConfig."""

    def test_defaults(self):
        """Default config carries the documented values."""
        cfg = HealingConfig.current()

        assert cfg.query_timeout == 5.0
        assert cfg.healing_enabled is True
        assert cfg.text_max_length == 50
        assert cfg.min_suggestion_frequency == 2

    def test_presets(self):
        """Presets apply over defaults, overrides over presets."""
        assert set(available_presets()) == {"default", "fast", "ci", "strict"}
        assert HealingConfig.build_from(preset="strict").healing_enabled is False

        cfg = HealingConfig.build_from(preset="ci", overrides={"query_timeout": 2.0})
        assert cfg.query_timeout == 2.0
        assert cfg.min_suggestion_frequency == 3

    def test_unknown_preset_and_field(self):
        """Typos are errors, not silent defaults."""
        with pytest.raises(ValueError):
            HealingConfig.build_from(preset="turbo")
        with pytest.raises(ValueError):
            HealingConfig.current().with_overrides(min_frequency=3)

    def test_validation(self):
        """Out-of-range values are rejected."""
        with pytest.raises(ValueError):
            HealingConfig(query_timeout=0)
        with pytest.raises(ValueError):
            HealingConfig(min_suggestion_frequency=0)

    def test_override_is_scoped(self):
        """override() applies inside the block only."""
        with HealingConfig.override(text_max_length=20) as cfg:
            assert cfg.text_max_length == 20
            assert HealingConfig.current() is cfg
        assert HealingConfig.current().text_max_length == 50

    def test_run_config_is_thread_local(self):
        """An installed run config is invisible to other threads."""
        HealingConfig.install_run_config(HealingConfig.build_from(preset="fast"))
        seen = {}

        def worker():
            seen["timeout"] = HealingConfig.current().query_timeout

        t = threading.Thread(target=worker)
        t.start()
        t.join()

        assert HealingConfig.current().query_timeout == 1.5
        assert seen["timeout"] == 5.0
        HealingConfig.clear_run_config()
        assert HealingConfig.current().query_timeout == 5.0
