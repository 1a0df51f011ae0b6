"""
Application settings management.

Settings are loaded from environment variables with .env file support.
Routing parameters (thresholds, candidate labels, label mapping) live in
config/routing.yaml. All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict


ClassifierProvider = Literal["none", "embedding", "http"]


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    routing_config_path: Optional[Path] = Field(
        default=None,
        description="Override path to routing.yaml (default: config/routing.yaml)",
    )

    # ==========================================================================
    # Content Index
    # ==========================================================================

    content_index_path: Path = Field(
        default=Path("content/content_index.json"),
        description="Path to the content index JSON document",
    )
    content_index_url: Optional[str] = Field(
        default=None,
        description="Fetch the content index over HTTP instead of from disk",
    )
    content_fetch_timeout: float = Field(
        default=10.0, gt=0, description="Content fetch timeout in seconds"
    )

    # ==========================================================================
    # Classifier
    # ==========================================================================
    #
    # The classifier is optional. With provider "none" the technique selector
    # relies on keyword triggers and the generic fallback only.

    classifier_provider: ClassifierProvider = Field(
        default="none", description="Text classification backend"
    )
    classifier_url: Optional[str] = Field(
        default=None, description="Zero-shot classification endpoint (http provider)"
    )
    classifier_api_key: Optional[str] = Field(
        default=None, description="Bearer token for the classification endpoint"
    )
    classifier_model: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence-transformers model (embedding provider)",
    )
    classifier_timeout: float = Field(
        default=10.0, gt=0, description="Classification call timeout in seconds"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    logs_dir: Optional[Path] = Field(
        default=None, description="Write a per-run log file here (disabled if unset)"
    )


# ============================================================================
# Routing Configuration (from YAML)
# ============================================================================


DEFAULT_CANDIDATE_LABELS = [
    "feeling of worthlessness",
    "anxiety about the future",
    "lack of motivation",
    "conflict between desire and action",
    "self-criticism",
    "fear of failure",
    "financial scarcity mindset",
    "loneliness in relationships",
    "imposter syndrome",
    "procrastination due to feeling overwhelmed",
    "perfectionism paralysis",
    "social comparison anxiety",
    "rejection sensitivity",
    "abandonment fears",
    "career dissatisfaction",
    "body image concerns",
    "relationship conflict avoidance",
    "decision-making paralysis",
    "chronic self-doubt",
    "emotional numbness",
]

# Classifier label -> content subtopic key. Labels missing here behave like
# "no match" and fall through to keyword matching.
DEFAULT_LABEL_SUBTOPICS = {
    "feeling of worthlessness": "Self-Worth",
    "anxiety about the future": "Future Anxiety",
    "lack of motivation": "Motivation",
    "conflict between desire and action": "Motivation",
    "self-criticism": "Inner Critic",
    "fear of failure": "Fear of Failure",
    "financial scarcity mindset": "Scarcity Mindset",
    "loneliness in relationships": "Loneliness",
    "imposter syndrome": "Imposter Syndrome",
    "procrastination due to feeling overwhelmed": "Overwhelm",
    "perfectionism paralysis": "Perfectionism",
    "social comparison anxiety": "Comparison",
    "rejection sensitivity": "Rejection",
    "abandonment fears": "Abandonment",
    "career dissatisfaction": "Career",
    "body image concerns": "Body Image",
    "relationship conflict avoidance": "Conflict Avoidance",
    "decision-making paralysis": "Overwhelm",
    "chronic self-doubt": "Self-Doubt",
    "emotional numbness": "Numbness",
}


class EmotionTiers(BaseModel):
    """Emotion lists that steer analytic journeys towards CBT.

    Emotions outside both tiers get a Socratic journey.
    """

    high: List[str] = Field(
        default_factory=lambda: [
            "overwhelmed",
            "ashamed",
            "desperate",
            "heartbroken",
            "worthless",
            "defeated",
        ]
    )
    medium: List[str] = Field(
        default_factory=lambda: [
            "anxious",
            "resentful",
            "lonely",
            "rejected",
            "inadequate",
            "embarrassed",
        ]
    )


class RoutingConfig(BaseModel):
    """
    Routing configuration loaded from routing.yaml.

    Holds every constant the technique selector and journey builder
    depend on, including the values that cross the classifier boundary.
    """

    confidence_threshold: float = Field(
        default=0.45,
        ge=0.0,
        le=1.0,
        description="Minimum top-label confidence to trust a classification",
    )
    high_intensity_threshold: int = Field(
        default=7, ge=0, le=10, description="Intensity at which ACT is forced"
    )
    max_alternative_angles: int = Field(
        default=2, ge=1, description="Alternative angles before ACT is forced"
    )
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retry budget per fallible operation"
    )
    retry_backoff_seconds: float = Field(
        default=0.25, ge=0.0, description="Base delay between load retries"
    )
    min_journey_steps: int = Field(default=5, ge=1)
    max_journey_steps: int = Field(default=7, ge=1)
    candidate_labels: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CANDIDATE_LABELS)
    )
    label_subtopics: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_LABEL_SUBTOPICS),
        description="Classifier label -> content subtopic key",
    )
    emotion_tiers: EmotionTiers = Field(default_factory=EmotionTiers)

    @field_validator("max_journey_steps")
    @classmethod
    def check_step_bounds(cls, v: int, info: ValidationInfo) -> int:
        """Journey length bounds must form a non-empty range."""
        min_steps = info.data.get("min_journey_steps")
        if min_steps is not None and v < min_steps:
            raise ValueError(
                f"max_journey_steps ({v}) must be >= min_journey_steps ({min_steps})"
            )
        return v


def load_routing_config(config_path: Optional[Path] = None) -> RoutingConfig:
    """
    Load routing configuration from YAML file.

    Args:
        config_path: Path to routing.yaml. If None, uses default path.

    Returns:
        RoutingConfig with validated settings (defaults if file missing)

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        project_root = Path(__file__).resolve().parent.parent.parent
        check_path = project_root / "config" / "routing.yaml"
        if check_path.exists():
            config_path = check_path
        else:
            cwd_config = Path.cwd() / "config" / "routing.yaml"
            if not cwd_config.exists():
                return RoutingConfig()
            config_path = cwd_config

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return RoutingConfig()

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return RoutingConfig()

    return RoutingConfig(**config_data)


# Global settings instance
settings = Settings()

# Global routing config instance (used by the application entry point)
routing_config = load_routing_config(settings.routing_config_path)
