"""Tests for pipeline configuration and the persisted settings manager."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from redact_engine.detection_config import (
    DEFAULT_PIPELINE_CONFIG,
    PASS_NAMES,
    DetectionConfig,
    PipelineConfig,
    PipelineConfigError,
    clamp_setting,
    get_config,
    reset_config,
)


# -----------------------------------------------------------------------
# PipelineConfig
# -----------------------------------------------------------------------


class TestPipelineConfig:
    def test_defaults(self) -> None:
        config = PipelineConfig()
        assert config.auto_anonymize_threshold == 0.6
        assert config.ml_confidence_threshold == 0.3
        assert all(config.is_pass_enabled(name) for name in PASS_NAMES)

    def test_numeric_settings_clamped(self) -> None:
        config = PipelineConfig(auto_anonymize_threshold=1.7, review_threshold=-0.2, context_window_size=5000)
        assert config.auto_anonymize_threshold == 1.0
        assert config.review_threshold == 0.0
        assert config.context_window_size == 1000

    def test_clamp_setting(self) -> None:
        assert clamp_setting("context_window_size", 12.9) == 12
        assert clamp_setting("enable_normalization", False) is False

    def test_unknown_pass_rejected(self) -> None:
        with pytest.raises(PipelineConfigError):
            PipelineConfig(passes={"spell_check": True})

    def test_partial_passes_filled_with_defaults(self) -> None:
        config = PipelineConfig(passes={"document_type": False})
        assert not config.is_pass_enabled("document_type")
        assert config.is_pass_enabled("consolidation")
        assert set(config.passes) == set(PASS_NAMES)

    def test_low_score_names_uppercased(self) -> None:
        assert PipelineConfig(low_score_entity_names={"date"}).low_score_entity_names == {"DATE"}

    def test_with_overrides(self) -> None:
        base = PipelineConfig(passes={"document_type": False})
        changed = base.with_overrides(review_threshold=0.5, passes={"consolidation": False})
        assert changed.review_threshold == 0.5
        assert not changed.is_pass_enabled("document_type")
        assert not changed.is_pass_enabled("consolidation")
        assert base.review_threshold == 0.4
        assert base.is_pass_enabled("consolidation")

    def test_with_overrides_clamps_and_rejects_unknown(self) -> None:
        assert PipelineConfig().with_overrides(ml_confidence_threshold=3).ml_confidence_threshold == 1.0
        with pytest.raises(PipelineConfigError):
            PipelineConfig().with_overrides(threshold=0.5)

    def test_dict_round_trip(self) -> None:
        config = PipelineConfig(review_threshold=0.3, low_score_entity_names={"DATE", "AMOUNT"})
        data = config.to_dict()
        assert data["low_score_entity_names"] == ["AMOUNT", "DATE"]
        assert PipelineConfig.from_dict(data) == config

    def test_from_dict_rejects_unknown(self) -> None:
        with pytest.raises(PipelineConfigError):
            PipelineConfig.from_dict({"verbose": True})


# -----------------------------------------------------------------------
# DetectionConfig
# -----------------------------------------------------------------------


class TestDetectionConfig:
    """Settings persisted as JSON with an adjustment history."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = DetectionConfig(str(tmp_path / "config.json"))
        assert config.get_value("auto_anonymize_threshold") == 0.6
        assert not (tmp_path / "config.json").exists()

    def test_set_value_persists_with_history(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        config = DetectionConfig(str(path))
        config.set_value("auto_anonymize_threshold", 0.75, reason="fewer false positives")

        saved = json.loads(path.read_text())
        assert saved["settings"]["auto_anonymize_threshold"] == 0.75
        entry = saved["adjustment_history"][-1]
        assert (entry["old_value"], entry["new_value"], entry["reason"]) == (0.6, 0.75, "fewer false positives")

        reloaded = DetectionConfig(str(path))
        assert reloaded.get_value("auto_anonymize_threshold") == 0.75

    def test_set_value_clamps(self, tmp_path: Path) -> None:
        config = DetectionConfig(str(tmp_path / "config.json"))
        config.set_value("review_threshold", 4, persist=False)
        assert config.get_value("review_threshold") == 1.0

    def test_unknown_setting(self, tmp_path: Path) -> None:
        config = DetectionConfig(str(tmp_path / "config.json"))
        with pytest.raises(PipelineConfigError):
            config.set_value("colour", "blue")
        with pytest.raises(PipelineConfigError):
            config.set_pass_enabled("spell_check", False)

    def test_history_bounded(self, tmp_path: Path) -> None:
        config = DetectionConfig(str(tmp_path / "config.json"))
        for i in range(120):
            config.set_value("context_window_size", i, persist=False)
        assert len(config.config["adjustment_history"]) == 100

    def test_pipeline_config(self, tmp_path: Path) -> None:
        config = DetectionConfig(str(tmp_path / "config.json"))
        config.set_pass_enabled("document_type", False, persist=False)
        config.set_value("ml_confidence_threshold", 0.5, persist=False)
        pipeline_config = config.get_pipeline_config()
        assert pipeline_config.ml_confidence_threshold == 0.5
        assert not pipeline_config.is_pass_enabled("document_type")

    def test_reset_to_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        config = DetectionConfig(str(path))
        config.set_value("review_threshold", 0.2)
        config.set_pass_enabled("consolidation", False)
        config.reset_to_defaults()
        reloaded = DetectionConfig(str(path))
        assert reloaded.config["settings"] == DEFAULT_PIPELINE_CONFIG
        assert reloaded.get_pipeline_config().is_pass_enabled("consolidation")
        assert reloaded.config["adjustment_history"] == []

    def test_unreadable_file_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")
        config = DetectionConfig(str(path))
        assert config.get_value("review_threshold") == 0.4

    def test_saved_file_merged_with_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "settings": {"review_threshold": 0.3, "retired_setting": 1},
            "passes": {"consolidation": False, "retired_pass": False},
        }))
        config = DetectionConfig(str(path))
        assert config.get_value("review_threshold") == 0.3
        assert config.get_value("auto_anonymize_threshold") == 0.6
        assert "retired_setting" not in config.config["settings"]
        assert set(config.config["passes"]) == set(PASS_NAMES)
        assert not config.get_pipeline_config().is_pass_enabled("consolidation")


class TestGlobalConfig:
    def test_singleton(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        reset_config()
        try:
            config = get_config()
            assert get_config() is config
            assert config.config_path == tmp_path / ".redact" / "detection_config.json"
            reset_config()
            assert get_config() is not config
        finally:
            reset_config()
