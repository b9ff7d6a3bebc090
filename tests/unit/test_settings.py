"""
Unit tests for amm_arb/settings.py

Covers layer precedence, presence checks and the persisted YAML state.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml
from conftest import MINT_IN, MINT_OUT, OTHER_MINT, make_pool

from amm_arb.exceptions import ConfigValidationError
from amm_arb.settings import (
    MERGE_RULES,
    STATE_PATH_ENV,
    Settings,
    configure_pools,
    default_settings,
    load_settings,
    merge_settings,
    reset_defaults,
    resolve_run_config,
    save_settings,
    state_file_path,
    update_setting,
)


class TestMerge:
    def test_default_settings_is_pure(self):
        assert default_settings() == default_settings()

    def test_every_field_has_a_rule(self):
        assert set(MERGE_RULES) == set(Settings.model_fields)

    def test_override_beats_persisted_beats_default(self):
        default = default_settings()
        persisted = Settings(slippage_bps=300, priority_fee=7)
        override = Settings(slippage_bps=50)

        merged = merge_settings(default, persisted, override)

        assert merged.slippage_bps == 50
        assert merged.priority_fee == 7
        assert merged.spread_threshold_bps == default.spread_threshold_bps

    def test_explicit_false_override_is_kept(self):
        merged = merge_settings(
            default_settings(), Settings(simulate_only=True), Settings(simulate_only=False)
        )
        assert merged.simulate_only is False

    def test_all_layers_empty(self):
        merged = merge_settings(Settings(), Settings(), Settings())
        assert merged == Settings()


class TestValidation:
    def test_rejects_out_of_range_values(self):
        with pytest.raises(ValueError):
            Settings(slippage_bps=10001)
        with pytest.raises(ValueError):
            Settings(amount_in=Decimal("0"))
        with pytest.raises(ValueError):
            Settings(rpc_url="ftp://example.com")
        with pytest.raises(ValueError):
            Settings(pool_a="   ")

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            Settings(pool_c="x")


class TestResolve:
    def test_missing_field(self):
        settings = default_settings().model_copy(update={"pool_b": None})

        with pytest.raises(ConfigValidationError) as exc_info:
            resolve_run_config(settings)

        assert exc_info.value.field == "pool_b"
        assert "pool_b" in str(exc_info.value)

    def test_identical_pools_rejected(self):
        d = default_settings()
        settings = d.model_copy(update={"pool_b": d.pool_a})

        with pytest.raises(ConfigValidationError):
            resolve_run_config(settings)

    def test_identical_mints_rejected(self):
        d = default_settings()
        settings = d.model_copy(update={"mint_out": d.mint_in})

        with pytest.raises(ConfigValidationError):
            resolve_run_config(settings)

    def test_resolves_defaults(self, tmp_path):
        config = resolve_run_config(default_settings(), tmp_path / "out.json")

        assert config.arb.amount_in == Decimal("0.00001")
        assert config.arb.simulate_only is True
        assert config.report_path == tmp_path / "out.json"
        assert "~" not in str(config.keypair_path)
        assert config.to_dict()["slippage_bps"] == 500

    def test_default_report_path(self):
        config = resolve_run_config(default_settings())
        assert config.report_path == Path("arbitrage_result.json")


class TestPersistence:
    def test_missing_file_is_initialized(self, tmp_path):
        path = tmp_path / "state.yaml"

        settings = load_settings(path)

        assert settings == default_settings()
        assert path.exists()

    def test_save_load_round_trip(self, tmp_path):
        path = tmp_path / "state.yaml"
        settings = Settings(amount_in=Decimal("0.25"), simulate_only=False)

        save_settings(path, settings)

        assert load_settings(path) == settings
        assert yaml.safe_load(path.read_text())["amount_in"] == "0.25"

    def test_reset_defaults_after_edits(self, tmp_path):
        path = tmp_path / "state.yaml"
        save_settings(path, update_setting(default_settings(), "slippage_bps", "42"))

        reset_defaults(path)

        assert load_settings(path) == default_settings()

    def test_invalid_yaml_content(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text("slippage_bps: lots\n")

        with pytest.raises(ConfigValidationError):
            load_settings(path)

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigValidationError):
            load_settings(path)

    def test_state_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv(STATE_PATH_ENV, str(tmp_path / "custom.yaml"))
        assert state_file_path() == tmp_path / "custom.yaml"


class TestUpdateSetting:
    def test_parses_string_values(self):
        settings = update_setting(default_settings(), "slippage_bps", "300")
        assert settings.slippage_bps == 300

        settings = update_setting(settings, "simulate_only", "false")
        assert settings.simulate_only is False

    def test_clear_value(self):
        settings = update_setting(default_settings(), "priority_fee", None)
        assert settings.priority_fee is None

    def test_unknown_field(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            update_setting(default_settings(), "bogus", "1")
        assert exc_info.value.field == "bogus"

    def test_invalid_value(self):
        with pytest.raises(ConfigValidationError):
            update_setting(default_settings(), "slippage_bps", "abc")


class TestConfigurePools:
    def test_keeps_current_input_mint(self):
        a = make_pool("PoolA", token_in=MINT_OUT, token_out=MINT_IN)
        b = make_pool("PoolB")

        settings = configure_pools(default_settings(), a, b)

        assert (settings.pool_a, settings.pool_b) == ("PoolA", "PoolB")
        assert (settings.mint_in, settings.mint_out) == (MINT_IN, MINT_OUT)
        assert settings.slippage_bps == default_settings().slippage_bps

    def test_prefers_wrapped_sol_for_new_pair(self):
        current = Settings(mint_in=OTHER_MINT, mint_out=MINT_OUT)
        a = make_pool("PoolA", token_in=MINT_OUT, token_out=MINT_IN)
        b = make_pool("PoolB")

        settings = configure_pools(current, a, b)

        assert (settings.mint_in, settings.mint_out) == (MINT_IN, MINT_OUT)

    def test_explicit_input_mint(self):
        settings = configure_pools(
            default_settings(), make_pool("PoolA"), make_pool("PoolB"), mint_in=MINT_OUT
        )

        assert (settings.mint_in, settings.mint_out) == (MINT_OUT, MINT_IN)

    def test_input_mint_not_in_pair(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            configure_pools(
                default_settings(), make_pool("PoolA"), make_pool("PoolB"), mint_in=OTHER_MINT
            )
        assert exc_info.value.field == "mint_in"

    def test_incompatible_pools(self):
        with pytest.raises(ConfigValidationError, match="Incompatible pools"):
            configure_pools(
                default_settings(), make_pool("PoolA"), make_pool("PoolB", token_in=OTHER_MINT)
            )

    def test_same_pool_twice(self):
        with pytest.raises(ConfigValidationError):
            configure_pools(default_settings(), make_pool("PoolA"), make_pool("PoolA"))
