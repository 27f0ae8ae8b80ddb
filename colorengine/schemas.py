"""
colorengine Schemas
Pydantic models for palette extraction configuration and results.
"""
from typing import List, Optional, Dict, Literal, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


AlgorithmName = Literal["octree", "median-cut", "improved-kmeans", "hybrid"]


class CamelModel(BaseModel):
    """Base model serializing with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RGBColor(CamelModel):
    """Color with three 0-255 integer channels."""
    model_config = ConfigDict(frozen=True)

    r: int = Field(..., ge=0, le=255, description="Red channel")
    g: int = Field(..., ge=0, le=255, description="Green channel")
    b: int = Field(..., ge=0, le=255, description="Blue channel")

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> "RGBColor":
        r, g, b = (int(v) for v in values[:3])
        return cls(r=r, g=g, b=b)

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    @property
    def hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"


class ExtractedColor(CamelModel):
    """Single palette color with its measured statistics."""
    color: RGBColor = Field(..., description="Representative color")
    frequency: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Share of processed pixels assigned to this color"
    )
    importance: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Normalized distance to the nearest other palette color"
    )
    representativeness: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Coverage of the source distribution (share x fit)"
    )


class ExtractionConfig(CamelModel):
    """
    Caller-supplied extraction settings.

    Every field is required; there are no algorithm-internal defaults.
    """
    target_color_count: int = Field(..., ge=1, description="Number of colors to return at most")
    max_color_count: int = Field(..., ge=1, description="Upper bound on palette size")
    quality_threshold: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Minimum acceptable quality score"
    )
    color_distance_threshold: float = Field(
        ...,
        ge=0.0,
        description="Euclidean RGB distance below which hybrid fusion merges colors"
    )
    memory_limit: float = Field(..., gt=0.0, description="Working-set limit in megabytes")

    @model_validator(mode="after")
    def check_color_counts(self) -> "ExtractionConfig":
        if self.max_color_count < self.target_color_count:
            raise ValueError(
                f"max_color_count ({self.max_color_count}) must be >= "
                f"target_color_count ({self.target_color_count})"
            )
        return self

    @property
    def memory_limit_bytes(self) -> int:
        return int(self.memory_limit * 1024 * 1024)

    def with_target(self, target_color_count: int) -> "ExtractionConfig":
        """Copy of this config with another target (max raised if needed)."""
        return self.model_copy(update={
            "target_color_count": target_color_count,
            "max_color_count": max(self.max_color_count, target_color_count),
        })


class ExtractionResult(CamelModel):
    """Output of one quantizer run."""
    colors: List[ExtractedColor] = Field(default_factory=list)
    algorithm: AlgorithmName
    extraction_time: float = Field(..., ge=0.0, description="Wall-clock duration in milliseconds")
    quality_score: float = Field(..., ge=0.0, le=1.0)
    memory_usage: int = Field(0, ge=0, description="Best-effort memory growth in bytes")
    color_count: int = Field(..., ge=0)
    meets_quality_threshold: bool = Field(
        ...,
        description="Whether quality_score reached the configured quality_threshold"
    )

    @field_validator("color_count")
    @classmethod
    def validate_color_count(cls, v, info):
        colors = info.data.get("colors")
        if colors is not None and v != len(colors):
            raise ValueError(f"color_count {v} does not match {len(colors)} colors")
        return v

    def rgb_tuples(self) -> List[Tuple[int, int, int]]:
        return [c.color.as_tuple() for c in self.colors]


class AlgorithmMetrics(CamelModel):
    """Normalized comparison metrics for one algorithm."""
    extraction_time: float
    quality_score: float
    memory_usage: int
    color_count: int
    speed_score: float
    memory_score: float
    overall_score: float


class ComparisonReport(CamelModel):
    """Outcome of running every quantizer on the same input."""
    results: Dict[str, ExtractionResult] = Field(default_factory=dict)
    metrics: Dict[str, AlgorithmMetrics] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)
    winner: Optional[str] = None
