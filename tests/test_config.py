"""
Tests for concerto.config.
"""

import logging

import pytest


class TestConcertoConfig:
    """Tests for ConcertoConfig."""

    def test_defaults(self):
        """Test default settings."""
        from concerto.config.settings import ConcertoConfig

        config = ConcertoConfig()

        assert config.scoring.method == "exact"
        assert config.grid.density == 50.0
        assert config.annealer.steps_per_musician == 500
        assert config.annealer.radius == 5.002
        assert config.solver == "greedy"
        assert config.seed is None

    def test_dict_round_trip(self):
        """Test to_dict/from_dict."""
        from concerto.config.settings import ConcertoConfig

        config = ConcertoConfig.for_quick_runs()
        config.seed = 7
        config.solver = "greedy+mix"

        restored = ConcertoConfig.from_dict(config.to_dict())

        assert restored == config

    def test_partial_dict(self):
        """Test that missing sections fall back to defaults."""
        from concerto.config.settings import ConcertoConfig

        config = ConcertoConfig.from_dict({"grid": {"density": 12.0}})

        assert config.grid.density == 12.0
        assert config.grid.min_per_musician == 4
        assert config.annealer.time_limit == 1200.0
        assert config.runner.log_every == 10

    def test_empty_dict(self):
        """Test that an empty YAML document gives defaults."""
        from concerto.config.settings import ConcertoConfig

        assert ConcertoConfig.from_dict(None) == ConcertoConfig()

    def test_unknown_key(self):
        """Test that typos in a section are reported."""
        from concerto.config.settings import ConcertoConfig

        with pytest.raises(ValueError, match="Malformed"):
            ConcertoConfig.from_dict({"annealer": {"steps": 10}})

    @pytest.mark.parametrize("data", [
        {"scoring": {"method": "raycast"}},
        {"grid": {"density": 0}},
        {"grid": {"min_per_musician": 0}},
        {"annealer": {"steps_per_musician": -1}},
        {"annealer": {"radius": 0}},
        {"runner": {"log_every": 0}},
    ])
    def test_invalid_values(self, data):
        """Test range checks."""
        from concerto.config.settings import ConcertoConfig

        with pytest.raises(ValueError):
            ConcertoConfig.from_dict(data)

    def test_yaml_round_trip(self, tmp_path):
        """Test saving and loading YAML."""
        from concerto.config.settings import ConcertoConfig, load_config

        config = ConcertoConfig.for_quick_runs()
        config.visualization.figsize = (6, 4)
        path = tmp_path / "concerto.yaml"
        config.to_yaml(path)

        restored = load_config(path)

        assert restored == config
        assert restored.visualization.figsize == (6, 4)
        assert "!!python" not in path.read_text()

    def test_json_round_trip(self, tmp_path):
        """Test saving and loading JSON."""
        from concerto.config.settings import ConcertoConfig, load_config

        config = ConcertoConfig()
        config.scoring.workers = 3
        path = tmp_path / "concerto.json"
        config.to_json(path)

        assert load_config(path) == config

    def test_make_rng(self):
        """Test reproducible generators from the seed."""
        from concerto.config.settings import ConcertoConfig

        config = ConcertoConfig(seed=3)

        assert config.make_rng().random() == config.make_rng().random()


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_path(self):
        """Test that no path means defaults."""
        from concerto.config.settings import ConcertoConfig, load_config

        assert load_config() == ConcertoConfig()

    def test_missing_file(self, tmp_path):
        """Test a path that doesn't exist."""
        from concerto.config.settings import load_config

        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        """Test an unknown extension."""
        from concerto.config.settings import load_config

        path = tmp_path / "concerto.toml"
        path.write_text("solver = 'greedy'\n")

        with pytest.raises(ValueError, match="Unsupported"):
            load_config(path)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_sets_level(self):
        """Test level names and numbers."""
        from concerto.config.settings import configure_logging

        logger = logging.getLogger("concerto")
        try:
            configure_logging("debug")
            assert logger.level == logging.DEBUG
            configure_logging(logging.INFO)
            assert logger.level == logging.INFO
            assert len(logger.handlers) == 1
        finally:
            logger.setLevel(logging.WARNING)

    def test_unknown_level(self):
        """Test a bad level name."""
        from concerto.config.settings import configure_logging

        with pytest.raises(ValueError):
            configure_logging("chatty")

    def test_debug_trace(self, small_problem, caplog):
        """Test that solvers log their progress at debug level."""
        from concerto.optimization.greedy import GreedySolver

        with caplog.at_level(logging.DEBUG, logger="concerto"):
            GreedySolver(density=10.0).solve(small_problem)

        assert any("placed musician" in r.getMessage() for r in caplog.records)
