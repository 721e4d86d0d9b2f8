"""
Tests for Configuration
=======================

Schema validation, defaults and JSON loading.
"""

import copy
import json

import pytest

from survey_regression.config_schema import (
    DEFAULT_CONFIG,
    apply_defaults,
    check_config,
    load_config,
    make_config,
    save_config,
    validate_config,
)
from survey_regression.constants import VIF_THRESHOLD, interpret_vif, validate_probabilities


@pytest.mark.unit
class TestValidateConfig:
    """Tests for validate_config."""

    def test_default_config_is_valid(self):
        result = validate_config(DEFAULT_CONFIG)
        assert result.is_valid
        assert result.errors == []

    def test_missing_section(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        del config['items']
        result = validate_config(config)
        assert not result.is_valid
        assert any('items' in e for e in result.errors)

    def test_probabilities_must_sum_to_one(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['covariates']['num_child']['probs'] = [0.5, 0.5, 0.5, 0.0, 0.0, 0.0]
        assert not validate_config(config).is_valid

    def test_probabilities_must_match_values(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['covariates']['num_child']['probs'] = [0.5, 0.5]
        assert not validate_config(config).is_valid

    def test_negative_sd_rejected(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['items']['aroma']['sd'] = -1
        assert not validate_config(config).is_valid

    def test_unknown_weight_column(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['overall']['weights']['smell'] = 0.4
        result = validate_config(config)
        assert not result.is_valid
        assert any('smell' in e for e in result.errors)

    def test_too_few_respondents(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['population']['N'] = 1
        assert not validate_config(config).is_valid

    def test_missing_seed_is_warning(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        del config['population']['seed']
        result = validate_config(config)
        assert result.is_valid
        assert result.warnings

    def test_zero_halo_is_warning(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['halo']['sd'] = 0.0
        result = validate_config(config)
        assert result.is_valid
        assert any('halo' in w for w in result.warnings)


@pytest.mark.unit
class TestLoadConfig:
    """Tests for loading, defaults and overrides."""

    def test_check_config_raises_on_invalid(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['halo']['sd'] = -5
        with pytest.raises(ValueError, match="Invalid configuration"):
            check_config(config)

    def test_check_config_warns(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        del config['population']['seed']
        with pytest.warns(UserWarning, match="seed"):
            checked = check_config(config)
        assert checked['population']['seed'] == DEFAULT_CONFIG['population']['seed']

    def test_apply_defaults_fills_offsets(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        del config['items']['clean']['offset']
        merged = apply_defaults(config)
        assert merged['items']['clean']['offset'] == 0.0
        assert 'offset' not in config['items']['clean']

    def test_load_default(self):
        config = load_config()
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_load_shipped_file(self, config_path):
        config = load_config(config_path)
        assert config['population']['N'] == 500
        assert config['population']['seed'] == 555
        assert list(config['items']) == ['clean', 'aroma', 'value', 'color']

    def test_save_and_reload(self, tmp_path):
        config = make_config(seed=1, n=50)
        path = save_config(config, tmp_path / 'nested' / 'cfg.json')
        assert json.loads(path.read_text())['population'] == {'N': 50, 'seed': 1}
        assert load_config(path) == config

    def test_make_config_does_not_touch_base(self):
        make_config(seed=9, n=20)
        assert DEFAULT_CONFIG['population']['seed'] == 555
        assert DEFAULT_CONFIG['population']['N'] == 500


@pytest.mark.unit
class TestConstants:

    def test_validate_probabilities(self):
        assert validate_probabilities([0.25, 0.75])
        assert not validate_probabilities([0.2, 0.2])
        assert not validate_probabilities([1.5, -0.5])

    def test_interpret_vif(self):
        assert interpret_vif(1.2) != interpret_vif(50.0)

    def test_vif_reporting_threshold(self):
        assert VIF_THRESHOLD == 5.0
        assert interpret_vif(VIF_THRESHOLD - 0.1) == "OK"
        assert interpret_vif(VIF_THRESHOLD + 1.0) == "Moderate collinearity"
        assert interpret_vif(10.0) == "Severe collinearity"
