"""
Tests for configuration models, result models and runtime settings.
"""

import pytest
from pydantic import ValidationError

from colorengine.config import Config
from colorengine.schemas import (
    ExtractedColor, ExtractionConfig, ExtractionResult, RGBColor
)
from colorengine.services.quantization.base import coerce_config


VALID_CONFIG = {
    "target_color_count": 5,
    "max_color_count": 10,
    "quality_threshold": 0.3,
    "color_distance_threshold": 20.0,
    "memory_limit": 64.0,
}


class TestExtractionConfig:
    """Test caller-supplied extraction settings"""

    def test_valid_config(self):
        """Test a complete config validates"""
        config = ExtractionConfig(**VALID_CONFIG)
        assert config.target_color_count == 5
        assert config.memory_limit_bytes == 64 * 1024 * 1024

    def test_every_field_required(self):
        """Test there are no silent defaults"""
        for field in VALID_CONFIG:
            values = {k: v for k, v in VALID_CONFIG.items() if k != field}
            with pytest.raises(ValidationError):
                ExtractionConfig(**values)

    @pytest.mark.parametrize("field,value", [
        ("target_color_count", 0),
        ("quality_threshold", 1.5),
        ("quality_threshold", -0.1),
        ("color_distance_threshold", -1.0),
        ("memory_limit", 0.0),
    ])
    def test_out_of_range_rejected(self, field, value):
        """Test each bound fails fast"""
        with pytest.raises(ValidationError):
            ExtractionConfig(**{**VALID_CONFIG, field: value})

    def test_max_below_target_rejected(self):
        """Test max_color_count must not be below target_color_count"""
        with pytest.raises(ValidationError, match="max_color_count"):
            ExtractionConfig(**{**VALID_CONFIG, "max_color_count": 3})

    def test_validation_error_is_value_error(self):
        """Test invalid configs surface as ValueError"""
        with pytest.raises(ValueError):
            ExtractionConfig(**{**VALID_CONFIG, "target_color_count": -2})

    def test_camel_case_round_trip(self):
        """Test camelCase names are accepted and emitted"""
        config = ExtractionConfig.model_validate({
            "targetColorCount": 4,
            "maxColorCount": 4,
            "qualityThreshold": 0.0,
            "colorDistanceThreshold": 10,
            "memoryLimit": 32,
        })
        dumped = config.model_dump(by_alias=True)
        assert dumped["targetColorCount"] == 4
        assert dumped["colorDistanceThreshold"] == 10

    def test_with_target_raises_max(self):
        """Test with_target keeps the config valid"""
        config = ExtractionConfig(**VALID_CONFIG)
        bigger = config.with_target(12)
        assert bigger.target_color_count == 12
        assert bigger.max_color_count == 12
        smaller = config.with_target(2)
        assert smaller.max_color_count == 10
        assert config.target_color_count == 5


class TestCoerceConfig:
    """Test config coercion used by every quantizer"""

    def test_model_passes_through(self):
        config = ExtractionConfig(**VALID_CONFIG)
        assert coerce_config(config) is config

    def test_mapping_validated(self):
        config = coerce_config(VALID_CONFIG)
        assert isinstance(config, ExtractionConfig)

    def test_invalid_mapping_raises(self):
        with pytest.raises(ValidationError):
            coerce_config({**VALID_CONFIG, "max_color_count": 1})

    def test_other_types_rejected(self):
        with pytest.raises(TypeError):
            coerce_config(42)


class TestResultModels:
    """Test palette result models"""

    def test_rgb_bounds(self):
        """Test channels outside 0..255 are rejected"""
        with pytest.raises(ValidationError):
            RGBColor(r=256, g=0, b=0)
        with pytest.raises(ValidationError):
            RGBColor(r=0, g=-1, b=0)

    def test_rgb_helpers(self):
        color = RGBColor.from_sequence([31, 78, 121])
        assert color.as_tuple() == (31, 78, 121)
        assert color.hex == "#1F4E79"

    def test_descriptor_bounds(self):
        """Test descriptors are limited to [0, 1]"""
        with pytest.raises(ValidationError):
            ExtractedColor(color=RGBColor(r=0, g=0, b=0), frequency=1.2,
                           importance=0.5, representativeness=0.5)

    def test_color_count_must_match(self):
        """Test color_count is tied to the number of colors"""
        color = ExtractedColor(color=RGBColor(r=1, g=2, b=3), frequency=1.0,
                               importance=1.0, representativeness=1.0)
        with pytest.raises(ValidationError, match="color_count"):
            ExtractionResult(colors=[color], algorithm="octree", extraction_time=1.0,
                             quality_score=0.0, memory_usage=0, color_count=2,
                             meets_quality_threshold=True)

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(ValidationError):
            ExtractionResult(colors=[], algorithm="dbscan", extraction_time=1.0,
                             quality_score=0.0, memory_usage=0, color_count=0,
                             meets_quality_threshold=True)

    def test_result_serializes_camel_case(self):
        result = ExtractionResult(colors=[], algorithm="median-cut", extraction_time=2.5,
                                  quality_score=0.0, memory_usage=0, color_count=0,
                                  meets_quality_threshold=False)
        dumped = result.model_dump(by_alias=True)
        assert dumped["extractionTime"] == 2.5
        assert dumped["colorCount"] == 0
        assert dumped["meetsQualityThreshold"] is False


class TestRuntimeConfig:
    """Test runtime settings validation helpers"""

    def test_comparison_weights_sum_to_one(self):
        assert Config.QUALITY_WEIGHT + Config.SPEED_WEIGHT + Config.MEMORY_WEIGHT == pytest.approx(1.0)

    def test_validate_max_iterations(self):
        assert Config.validate_max_iterations(50)
        assert not Config.validate_max_iterations(0)
        assert not Config.validate_max_iterations(5000)

    def test_validate_convergence_threshold(self):
        assert Config.validate_convergence_threshold(1.0)
        assert not Config.validate_convergence_threshold(-0.5)

    def test_validate_max_samples(self):
        assert Config.validate_max_samples(1)
        assert not Config.validate_max_samples(0)

    def test_validate_log_level(self):
        assert Config.validate_log_level("debug")
        assert not Config.validate_log_level("verbose")
