"""
Configuration tests.
"""

from unittest.mock import patch

from conviction.config import ConvictionConfig
from conviction.core.models import Archetype, ArchetypeThresholds, ScoringWeights


def test_defaults():
    with patch.dict("os.environ", {}, clear=True):
        assert ConvictionConfig.get_patience_window_days() == 90
        assert ConvictionConfig.get_early_exit_threshold_pct() == 50.0
        assert ConvictionConfig.get_cache_max_size() == 500
        assert ConvictionConfig.get_redis_enabled() is False
        assert ConvictionConfig.get_trust_batch_limit() == 50
        assert ConvictionConfig.get_log_level() == "INFO"


def test_weights_from_environment():
    env = {
        "WEIGHT_WIN_RATE": "0.4",
        "WEIGHT_UPSIDE_CAPTURE": "0.3",
        "WEIGHT_EARLY_EXIT_MITIGATION": "0.2",
        "WEIGHT_HOLDING_PERIOD": "0.1",
    }
    with patch.dict("os.environ", env, clear=True):
        weights = ScoringWeights.from_config()
    assert weights == ScoringWeights(0.4, 0.3, 0.2, 0.1)


def test_empty_state_archetype_from_environment():
    with patch.dict("os.environ", {"ARCHETYPE_EMPTY_STATE": "Diamond Hand"}, clear=True):
        assert ArchetypeThresholds.from_config().empty_state == Archetype.DIAMOND_HAND


def test_validate_config_flags_negative_weight(tmp_path):
    env = {"WEIGHT_WIN_RATE": "-0.25", "CONVICTION_DB_PATH": str(tmp_path / "c.db")}
    with patch.dict("os.environ", env, clear=True):
        is_valid, warnings = ConvictionConfig.validate_config()
    assert is_valid is False
    assert any("negative" in w for w in warnings)


def test_validate_config_warns_on_missing_keys(tmp_path):
    with patch.dict("os.environ", {"CONVICTION_DB_PATH": str(tmp_path / "c.db")}, clear=True):
        is_valid, warnings = ConvictionConfig.validate_config()
    assert is_valid is True
    assert any("BIRDEYE_API_KEY" in w for w in warnings)


def test_print_config_summary(capsys):
    with patch.dict("os.environ", {"BIRDEYE_API_KEY": "k"}, clear=True):
        ConvictionConfig.print_config_summary()
    out = capsys.readouterr().out
    assert "Birdeye API Key: Set" in out
    assert "Patience Window: 90 days" in out
