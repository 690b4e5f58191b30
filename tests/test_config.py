"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from maq.config import (
    BootstrapConfig,
    MaqConfig,
    PathConfig,
    get_config,
    load_config,
    set_config,
)


class TestMaqConfig:
    """Test config defaults, validation and YAML round-trips."""

    def test_defaults(self):
        config = MaqConfig()

        assert config.path.epsilon == 1e-12
        assert config.bootstrap.n_replicates == 200
        assert config.bootstrap.seed is None
        assert config.bootstrap.n_jobs == 1
        assert config.bootstrap.max_failure_rate == 0.1
        assert config.bootstrap.on_excess_failures == "raise"

    def test_yaml_round_trip(self, tmp_path):
        config = MaqConfig(
            path=PathConfig(epsilon=1e-9),
            bootstrap=BootstrapConfig(n_replicates=50, seed=3, n_jobs=2),
        )
        target = tmp_path / "maq.yaml"

        config.to_yaml(target)
        loaded = MaqConfig.from_yaml(target)

        assert loaded == config

    def test_partial_yaml(self, tmp_path):
        target = tmp_path / "maq.yaml"
        target.write_text("bootstrap:\n  n_replicates: 10\n")

        loaded = load_config(target)

        assert loaded.bootstrap.n_replicates == 10
        assert loaded.path.epsilon == 1e-12
        assert get_config() is loaded

    def test_empty_yaml(self, tmp_path):
        target = tmp_path / "maq.yaml"
        target.write_text("")

        assert MaqConfig.from_yaml(target) == MaqConfig()

    def test_set_config(self):
        custom = MaqConfig(bootstrap=BootstrapConfig(n_replicates=3))
        set_config(custom)

        assert get_config().bootstrap.n_replicates == 3

    def test_load_without_file_falls_back(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert load_config() == MaqConfig()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"n_replicates": -1},
            {"n_jobs": 0},
            {"max_failure_rate": 1.5},
            {"on_excess_failures": "ignore"},
        ],
    )
    def test_invalid_bootstrap_settings(self, kwargs):
        with pytest.raises(ValidationError):
            BootstrapConfig(**kwargs)
