"""
Layer 1: Configuration Tests
"""
from elicit.config import CONFIG_PATH, build_engine_config, load_config


class TestLoadConfig:
    """YAML loading and env overrides."""

    def test_bundled_config_loads(self):
        config = load_config()

        assert CONFIG_PATH.exists()
        assert config["engine"]["max_questions_per_session"] == 100
        assert config["confidence"]["weights"]["clarity"] == 0.25

    def test_yaml_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  ambiguity_penalty: 0.3\n")

        config = load_config(path)

        assert config["engine"]["ambiguity_penalty"] == 0.3
        assert config["engine"]["max_questions_per_session"] == 100

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config["engine"]["default_target_confidence"] == 0.85

    def test_env_overrides_are_typed(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ELICIT_ENGINE_MAX_QUESTIONS_PER_SESSION", "20")
        monkeypatch.setenv("ELICIT_ENGINE_PERSIST_QUESTIONS", "true")
        monkeypatch.setenv("ELICIT_ENGINE_DEFAULT_TARGET_CONFIDENCE", "0.9")
        monkeypatch.setenv("ELICIT_CONFIDENCE_CRITICAL_CATEGORIES", "requirements, security")

        config = load_config(tmp_path / "absent.yaml")

        assert config["engine"]["max_questions_per_session"] == 20
        assert config["engine"]["persist_questions"] is True
        assert config["engine"]["default_target_confidence"] == 0.9
        assert config["confidence"]["critical_categories"] == ["requirements", "security"]

    def test_bad_env_override_is_ignored(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ELICIT_ENGINE_MAX_QUESTIONS_PER_SESSION", "lots")
        monkeypatch.setenv("ELICIT_ENGINE_ENABLE_ADAPTIVE_PRIORITY", "sometimes")

        config = load_config(tmp_path / "absent.yaml")

        assert config["engine"]["max_questions_per_session"] == 100
        assert config["engine"]["enable_adaptive_priority"] is True


class TestBuildEngineConfig:
    """Flattening the config dict into EngineConfig."""

    def test_defaults(self, tmp_path):
        engine_config = build_engine_config(load_config(tmp_path / "absent.yaml"))

        assert engine_config.default_target_confidence == 0.85
        assert engine_config.templates_path is None
        assert engine_config.max_follow_up_depth is None
        assert engine_config.critical_categories == ["requirements", "constraints", "edge-cases"]
        assert engine_config.weights["examples"] == 0.05

    def test_explicit_values(self):
        engine_config = build_engine_config({
            "engine": {"templates_path": "/tmp/q.yaml", "max_follow_up_depth": 1},
            "confidence": {"min_answers_for_consistency": 5},
        })

        assert engine_config.templates_path == "/tmp/q.yaml"
        assert engine_config.max_follow_up_depth == 1
        assert engine_config.min_answers_for_consistency == 5
