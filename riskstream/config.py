"""Configuration Management Module.

Provides typed configuration for the risk-scoring pipeline and the
simulation driver, with support for YAML files, environment variable
overrides, and validation.

Every tunable constant (normalization caps, scoring weights, boost
multipliers, rule thresholds, risk cut-points, simulation mix) lives here so
that the feature extractor, the scorer, the alert dispatcher and the driver
read the same values.

Uses Pydantic v2 for robust configuration validation.
"""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class NormalizationConfig(BaseModel):
    """Caps used to squash raw feature values into [0, 1]."""

    max_amount: float = Field(default=10000.0, gt=0, description="Amount cap")
    device_age_hours: float = Field(
        default=24.0, gt=0, description="Device age (hours) treated as fully aged"
    )
    max_merchant_risk: float = Field(default=100.0, gt=0, description="Merchant risk cap")
    max_frequency: float = Field(
        default=10.0, gt=0, description="Recent transaction count cap"
    )
    max_avg_amount: float = Field(default=5000.0, gt=0, description="User average cap")
    recent_window_minutes: int = Field(
        default=5, ge=1, description="Trailing window for the frequency signal"
    )
    history_window_hours: int = Field(
        default=24, ge=1, description="Trailing window for the user history signal"
    )
    category_risk: dict[str, float] = Field(
        default_factory=lambda: {
            "gambling": 0.9,
            "crypto": 0.85,
            "electronics": 0.6,
            "travel": 0.55,
            "retail": 0.35,
            "grocery": 0.2,
        },
        description="Merchant category risk in [0, 1]; unknown categories score 0.5",
    )

    @field_validator("category_risk")
    @classmethod
    def validate_category_risk(cls, v: dict[str, float]) -> dict[str, float]:
        """Validate category risks are probabilities."""
        for name, risk in v.items():
            if not 0.0 <= risk <= 1.0:
                raise ValueError(f"Category risk for {name} must be in [0, 1]")
        return {name.lower(): risk for name, risk in v.items()}


class WeightsConfig(BaseModel):
    """Weights of the rule-based weighted sum."""

    amount: float = Field(default=0.20, ge=0.0, le=1.0)
    merchant_risk: float = Field(default=0.25, ge=0.0, le=1.0)
    device_age: float = Field(default=0.10, ge=0.0, le=1.0)
    frequency: float = Field(default=0.15, ge=0.0, le=1.0)
    avg_amount: float = Field(default=0.10, ge=0.0, le=1.0)
    device_fingerprint: float = Field(default=0.10, ge=0.0, le=1.0)
    pattern: float = Field(default=0.10, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_total(self) -> "WeightsConfig":
        """The weighted sum must stay inside [0, 1]."""
        total = sum(self.model_dump().values())
        if total > 1.0 + 1e-9:
            raise ValueError(f"Scoring weights must sum to at most 1.0, got {total:.3f}")
        return self


class MultipliersConfig(BaseModel):
    """Boost factors applied when a rule threshold is exceeded."""

    amount: float = Field(default=1.2, ge=1.0)
    frequency: float = Field(default=1.1, ge=1.0)
    new_device: float = Field(default=1.2, ge=1.0)
    high_risk_merchant: float = Field(default=1.3, ge=1.0)


class RulesConfig(BaseModel):
    """Raw thresholds shared by boosts and human-readable reasons."""

    high_risk_merchant: float = Field(
        default=80.0, ge=0.0, le=100.0, description="Merchant risk level above which it is high risk"
    )
    high_frequency: int = Field(
        default=8, ge=1, description="Recent transaction count above which frequency is high"
    )
    new_device_hours: float = Field(
        default=0.5, ge=0.0, description="Device age below which a device is new"
    )
    high_amount_ratio: float = Field(
        default=2.0, gt=1.0, description="Amount / user average ratio that counts as far above"
    )
    high_amount_normalized: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Normalized amount considered high"
    )
    high_velocity: float = Field(default=0.5, ge=0.0, le=1.0)
    model_high_risk: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Model prediction flagged as high risk"
    )
    off_hours_start: int = Field(default=6, ge=0, le=23)
    off_hours_end: int = Field(default=22, ge=0, le=23)


class ThresholdsConfig(BaseModel):
    """Risk score cut-points (0-100) shared by the scorer and the alert dispatcher."""

    critical: int = Field(default=90, ge=0, le=100)
    high: int = Field(default=75, ge=0, le=100, description="Alert and label threshold")
    elevated: int = Field(default=70, ge=0, le=100)
    medium: int = Field(default=50, ge=0, le=100)
    low: int = Field(default=30, ge=0, le=100)

    @model_validator(mode="after")
    def validate_order(self) -> "ThresholdsConfig":
        """Cut-points must be strictly increasing."""
        if not self.low < self.medium < self.elevated < self.high < self.critical:
            raise ValueError(
                "Thresholds must satisfy low < medium < elevated < high < critical"
            )
        return self


class ModelConfig(BaseModel):
    """Configuration for the trainable scorer."""

    kind: Literal["linear", "logistic"] = Field(
        default="linear", description="Model family used by the model manager"
    )
    ridge_alpha: float = Field(default=0.1, ge=0.0, description="Linear model L2 penalty")
    regularization: float = Field(
        default=0.01, gt=0.0, description="Logistic model inverse of C"
    )
    max_iter: int = Field(default=1000, ge=1)
    jitter: float = Field(
        default=0.1, ge=0.0, lt=1.0, description="Max relative jitter on the model prediction"
    )
    min_confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    random_state: Optional[int] = Field(default=42)


class TrainingConfig(BaseModel):
    """Configuration for batch retraining."""

    max_examples: int = Field(default=1000, ge=1, description="Most recent examples used")
    prediction_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Cut-off turning predictions into labels"
    )


class SimulationConfig(BaseModel):
    """Configuration for the synthetic transaction driver."""

    interval_seconds: float = Field(default=10.0, gt=0.0)
    description: str = Field(
        default="Generates mock transactions every 10 seconds with fraud patterns"
    )
    seed: Optional[int] = Field(default=None, description="Random seed")
    locale: str = Field(default="en_US", description="Faker locale for seed data")

    amount_patterns: dict[str, float] = Field(
        default_factory=lambda: {
            "normal": 0.70,
            "high_value": 0.15,
            "micro": 0.10,
            "suspicious_round": 0.05,
        },
        description="Selection weights of the amount patterns",
    )
    normal_range: tuple[float, float] = (100.0, 5000.0)
    high_value_range: tuple[float, float] = (8000.0, 15000.0)
    micro_range: tuple[float, float] = (1.0, 50.0)
    round_amounts: list[float] = Field(
        default_factory=lambda: [1000.0, 2000.0, 5000.0, 10000.0, 15000.0]
    )

    injection_probability: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Chance a tick tries a fraud pattern"
    )
    fraud_patterns: dict[str, float] = Field(
        default_factory=lambda: {
            "rapid_succession": 0.25,
            "off_hours": 0.25,
            "unusual_amount": 0.25,
            "new_combination": 0.25,
        },
        description="Selection weights of the fraud-pattern injectors",
    )
    fraud_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "rapid_succession": 1.5,
            "off_hours": 1.3,
            "unusual_amount": 1.4,
            "new_combination": 1.6,
        }
    )
    rapid_succession_minutes: int = Field(default=2, ge=1)
    rapid_succession_threshold: int = Field(default=3, ge=0)
    unusual_amount_factor: float = Field(default=2.0, gt=0.0)
    default_user_average: float = Field(default=1000.0, gt=0.0)

    suspicious_user_probability: float = Field(default=0.20, ge=0.0, le=1.0)
    suspicious_user_max_transactions: int = Field(default=5, ge=1)
    suspicious_device_probability: float = Field(default=0.25, ge=0.0, le=1.0)
    suspicious_device_max_age_hours: float = Field(default=24.0, gt=0.0)
    high_risk_merchant_probability: float = Field(default=0.30, ge=0.0, le=1.0)
    high_risk_merchant_level: int = Field(default=70, ge=0, le=100)

    @field_validator("amount_patterns", "fraud_patterns")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Validate selection weights are non-negative and not all zero."""
        for name, weight in v.items():
            if weight < 0:
                raise ValueError(f"Weight for {name} must be non-negative")
        if v and sum(v.values()) <= 0:
            raise ValueError("At least one weight must be positive")
        return v

    @field_validator("normal_range", "high_value_range", "micro_range")
    @classmethod
    def validate_range(cls, v: tuple[float, float]) -> tuple[float, float]:
        """Validate amount ranges are positive and ordered."""
        low, high = v
        if low <= 0 or high < low:
            raise ValueError("Amount ranges must satisfy 0 < min <= max")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="text", description="Log format")
    log_file: Optional[str] = Field(default=None, description="Log file path")


class RiskStreamConfig(BaseModel):
    """Main configuration for riskstream."""

    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    weights: WeightsConfig = Field(default_factory=WeightsConfig)
    multipliers: MultipliersConfig = Field(default_factory=MultipliersConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid", "frozen": True}


def _apply_env_overrides(config: RiskStreamConfig) -> RiskStreamConfig:
    """Apply environment variable overrides to configuration.

    Supports the following environment variables:
    - RISKSTREAM_MODEL_KIND
    - RISKSTREAM_HIGH_RISK, RISKSTREAM_MEDIUM_RISK
    - RISKSTREAM_SIM_INTERVAL, RISKSTREAM_SIM_SEED
    - RISKSTREAM_LOG_LEVEL, RISKSTREAM_LOG_FILE
    """
    config_dict = config.model_dump()

    if os.getenv("RISKSTREAM_MODEL_KIND"):
        config_dict["model"]["kind"] = os.environ["RISKSTREAM_MODEL_KIND"]

    # Threshold overrides
    if os.getenv("RISKSTREAM_HIGH_RISK"):
        config_dict["thresholds"]["high"] = int(os.environ["RISKSTREAM_HIGH_RISK"])
    if os.getenv("RISKSTREAM_MEDIUM_RISK"):
        config_dict["thresholds"]["medium"] = int(os.environ["RISKSTREAM_MEDIUM_RISK"])

    # Simulation overrides
    if os.getenv("RISKSTREAM_SIM_INTERVAL"):
        config_dict["simulation"]["interval_seconds"] = float(
            os.environ["RISKSTREAM_SIM_INTERVAL"]
        )
    if os.getenv("RISKSTREAM_SIM_SEED"):
        config_dict["simulation"]["seed"] = int(os.environ["RISKSTREAM_SIM_SEED"])

    # Logging overrides
    if os.getenv("RISKSTREAM_LOG_LEVEL"):
        config_dict["logging"]["level"] = os.environ["RISKSTREAM_LOG_LEVEL"]
    if os.getenv("RISKSTREAM_LOG_FILE"):
        config_dict["logging"]["log_file"] = os.environ["RISKSTREAM_LOG_FILE"]

    return RiskStreamConfig.model_validate(config_dict)


def load_config(config_path: Optional[str] = None) -> RiskStreamConfig:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, tries default locations:
                    1. config/default.yaml
                    2. Default RiskStreamConfig values

    Returns:
        Validated RiskStreamConfig object.

    Raises:
        ValueError: If configuration is invalid.
    """
    config_dict: dict = {}

    if config_path:
        path = Path(config_path)
    else:
        path = Path("config/default.yaml")

    if path.exists():
        with open(path, "r") as f:
            config_dict = yaml.safe_load(f) or {}

    try:
        config = RiskStreamConfig.model_validate(config_dict)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return _apply_env_overrides(config)


def save_config(config: RiskStreamConfig, config_path: str) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration to save.
        config_path: Path to save YAML file.
    """
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode="json")

    with open(path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


def get_default_config() -> RiskStreamConfig:
    """Get default configuration.

    Returns:
        RiskStreamConfig with default values.
    """
    return RiskStreamConfig()
