"""Configuration file support for growthcast.

Supports YAML config files with per-model fitting parameters.
CLI flags override config file values.
"""

from dataclasses import asdict, dataclass, field, fields as dataclass_fields
import logging
from pathlib import Path
from typing import ClassVar, Literal

import yaml

logger = logging.getLogger(__name__)

MODEL_NAMES = ("exponential", "logistic", "gompertz", "richards")

OUTPUT_TABLES = ("comparison", "point_forecast", "intervals", "next_day", "predictions")


@dataclass
class ModelFitConfig:
    """Fitting parameters for a single growth model.

    Attributes:
        enabled: Fit this model (default True)
        max_iter: Maximum optimizer function evaluations (default 1000)
        tolerance: Relative convergence tolerance (default 1e-8)
    """
    enabled: bool = True
    max_iter: int = 1000
    tolerance: float = 1e-8


def _richards_fit_config() -> ModelFitConfig:
    return ModelFitConfig(max_iter=200, tolerance=1e-5)


@dataclass
class RichardsStartConfig:
    """Richards start-value search parameters.

    Attributes:
        method: scipy.optimize.minimize method (default Nelder-Mead)
        rate_seed: Initial rate parameter (default 0.05)
        shape_seed: Initial shape parameter (default 1.0)
        max_iter: Maximum optimizer iterations (default 2000)
    """
    method: str = "Nelder-Mead"
    rate_seed: float = 0.05
    shape_seed: float = 1.0
    max_iter: int = 2000


@dataclass
class BootstrapSettings:
    """Moving block bootstrap parameters.

    Attributes:
        enabled: Compute prediction intervals (default True)
        replicates: Number of bootstrap replicates (default 500)
        block_length: Block length or "auto" for ceil(n ** (1/3))
        confidence: Interval confidence level (default 0.95)
        seed: Random seed (None = non-deterministic)
        workers: Worker processes for replicates (default 1 = serial)
        timeout: Seconds per model before stopping early (None = no limit)
        min_success_fraction: Successful/requested ratio below which the
            interval is flagged underreplicated (default 0.9)
    """
    enabled: bool = True
    replicates: int = 500
    block_length: int | str = "auto"
    confidence: float = 0.95
    seed: int | None = None
    workers: int = 1
    timeout: float | None = None
    min_success_fraction: float = 0.9


@dataclass
class ForecastConfig:
    """Forecast parameters.

    Attributes:
        horizon: Days past the last observation to forecast (default 7)
        min_points: Minimum observations required to fit (default 5)
    """
    horizon: int = 7
    min_points: int = 5


@dataclass
class SelectionConfig:
    """Model selection and fit grading parameters.

    Attributes:
        grade_thresholds: Minimum R² for letter grades A-D
        min_r_squared: R² below which a fit is flagged as poor - FR001
    """
    grade_thresholds: dict[str, float] = field(default_factory=lambda: {
        "A": 0.99, "B": 0.95, "C": 0.90, "D": 0.80,
    })
    min_r_squared: float = 0.9


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        format: Export format - 'json' or 'csv' (default: json)
        tables: Tables written in csv format
    """
    format: Literal["json", "csv"] = "json"
    tables: list[str] = field(default_factory=lambda: list(OUTPUT_TABLES))


@dataclass
class GrowthcastConfig:
    """Complete growthcast configuration.

    Attributes:
        exponential: Exponential model fitting parameters
        logistic: Logistic model fitting parameters
        gompertz: Gompertz model fitting parameters
        richards: Richards model fitting parameters
        richards_start: Richards start-value search parameters
        bootstrap: Bootstrap interval parameters
        forecast: Forecast horizon and data requirements
        selection: Model selection parameters
        output: Output configuration
    """
    exponential: ModelFitConfig = field(default_factory=ModelFitConfig)
    logistic: ModelFitConfig = field(default_factory=ModelFitConfig)
    gompertz: ModelFitConfig = field(default_factory=ModelFitConfig)
    richards: ModelFitConfig = field(default_factory=_richards_fit_config)
    richards_start: RichardsStartConfig = field(default_factory=RichardsStartConfig)
    bootstrap: BootstrapSettings = field(default_factory=BootstrapSettings)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def get_model_config(self, model: str) -> ModelFitConfig:
        """Get configuration for a specific model."""
        if model not in MODEL_NAMES:
            raise ValueError(f"Unknown model: {model}")
        return getattr(self, model)

    @property
    def enabled_models(self) -> list[str]:
        return [m for m in MODEL_NAMES if self.get_model_config(m).enabled]

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid
        """
        errors = []

        for model_name in MODEL_NAMES:
            model_config = self.get_model_config(model_name)
            if model_config.max_iter < 1:
                errors.append(
                    f"{model_name}: max_iter ({model_config.max_iter}) must be at least 1"
                )
            if not 0 < model_config.tolerance < 1:
                errors.append(
                    f"{model_name}: tolerance ({model_config.tolerance}) must be in (0, 1)"
                )
        if not self.enabled_models:
            errors.append("at least one model must be enabled")

        if self.richards_start.rate_seed <= 0:
            errors.append(
                f"richards_start.rate_seed ({self.richards_start.rate_seed}) must be greater than 0"
            )
        if self.richards_start.max_iter < 1:
            errors.append(
                f"richards_start.max_iter ({self.richards_start.max_iter}) must be at least 1"
            )

        bs = self.bootstrap
        if bs.replicates < 1:
            errors.append(f"bootstrap.replicates ({bs.replicates}) must be at least 1")
        if not 0 < bs.confidence < 1:
            errors.append(f"bootstrap.confidence ({bs.confidence}) must be in (0, 1)")
        if bs.block_length != "auto" and (not isinstance(bs.block_length, int) or bs.block_length < 1):
            errors.append(
                f"bootstrap.block_length ({bs.block_length}) must be 'auto' or a positive integer"
            )
        if bs.workers < 1:
            errors.append(f"bootstrap.workers ({bs.workers}) must be at least 1")
        if bs.timeout is not None and bs.timeout <= 0:
            errors.append(f"bootstrap.timeout ({bs.timeout}) must be greater than 0")
        if not 0 <= bs.min_success_fraction <= 1:
            errors.append(
                f"bootstrap.min_success_fraction ({bs.min_success_fraction}) must be in [0, 1]"
            )

        if self.forecast.horizon < 1:
            errors.append(f"forecast.horizon ({self.forecast.horizon}) must be at least 1")
        if self.forecast.min_points < 3:
            errors.append(
                f"forecast.min_points ({self.forecast.min_points}) must be at least 3"
            )

        if self.output.format not in ("json", "csv"):
            errors.append(f"output.format ({self.output.format}) must be 'json' or 'csv'")
        unknown_tables = set(self.output.tables) - set(OUTPUT_TABLES)
        if unknown_tables:
            errors.append(
                f"output.tables has unknown table(s): {', '.join(sorted(unknown_tables))}"
            )

        if errors:
            raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))

    @classmethod
    def from_yaml(cls, filepath: Path | str) -> "GrowthcastConfig":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML config file

        Returns:
            GrowthcastConfig instance

        Raises:
            ValueError: If configuration values are invalid
        """
        filepath = Path(filepath)
        with open(filepath) as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)
        config.validate()
        return config

    @staticmethod
    def _filter_unknown_keys(
        section_data: dict,
        dataclass_type: type,
        section_name: str,
    ) -> dict:
        """Filter unknown keys from a config section and warn about them.

        Args:
            section_data: Raw config dictionary for a section
            dataclass_type: The dataclass type to validate against
            section_name: Section name for error messages

        Returns:
            Filtered dictionary with only known keys
        """
        known_keys = {f.name for f in dataclass_fields(dataclass_type)}
        unknown_keys = set(section_data) - known_keys
        if unknown_keys:
            logger.warning(
                f"Unknown key(s) in '{section_name}' config section: "
                f"{', '.join(sorted(unknown_keys))}. "
                f"Valid keys: {', '.join(sorted(known_keys))}"
            )
        return {k: v for k, v in section_data.items() if k in known_keys}

    # Mapping of section name -> dataclass type for from_dict iteration
    _SECTION_TYPES: ClassVar[dict[str, type]] = {
        "exponential": ModelFitConfig, "logistic": ModelFitConfig,
        "gompertz": ModelFitConfig, "richards": ModelFitConfig,
        "richards_start": RichardsStartConfig, "bootstrap": BootstrapSettings,
        "forecast": ForecastConfig, "selection": SelectionConfig, "output": OutputConfig,
    }

    @classmethod
    def from_dict(cls, data: dict) -> "GrowthcastConfig":
        """Create configuration from dictionary.

        Unknown keys in any section are logged as warnings and ignored,
        rather than causing opaque TypeErrors. Keys missing from a section
        keep that section's defaults.

        Args:
            data: Configuration dictionary

        Returns:
            GrowthcastConfig instance
        """
        config = cls()

        unknown_sections = set(data) - set(cls._SECTION_TYPES)
        if unknown_sections:
            logger.warning(
                f"Unknown top-level config section(s): {', '.join(sorted(unknown_sections))}. "
                f"Valid sections: {', '.join(sorted(cls._SECTION_TYPES))}"
            )

        for section, dtype in cls._SECTION_TYPES.items():
            if section in data and data[section] is not None:
                section_data = cls._filter_unknown_keys(data[section], dtype, section)
                merged = {**asdict(getattr(config, section)), **section_data}
                if section == "output" and "tables" in merged:
                    merged["tables"] = list(merged["tables"])
                if section == "selection":
                    defaults = SelectionConfig().grade_thresholds
                    merged["grade_thresholds"] = {**defaults, **(merged["grade_thresholds"] or {})}
                setattr(config, section, dtype(**merged))

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return asdict(self)

    def to_yaml(self, filepath: Path | str) -> None:
        """Save configuration to YAML file.

        Args:
            filepath: Output file path
        """
        filepath = Path(filepath)
        with open(filepath, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def generate_default_config(filepath: Path | str) -> Path:
    """Generate a default configuration file.

    Args:
        filepath: Output file path

    Returns:
        Path to created file
    """
    filepath = Path(filepath)

    # Add comments by writing manually
    content = """# growthcast Configuration File
# Per-model growth curve fitting parameters

exponential:
  enabled: true
  max_iter: 1000      # Maximum optimizer function evaluations
  tolerance: 1.0e-8   # Relative convergence tolerance

logistic:
  enabled: true
  max_iter: 1000
  tolerance: 1.0e-8

gompertz:
  enabled: true
  max_iter: 1000
  tolerance: 1.0e-8

richards:
  enabled: true
  max_iter: 200       # Richards wanders; give up sooner
  tolerance: 1.0e-5

# Richards start-value search
richards_start:
  method: Nelder-Mead # Any scipy.optimize.minimize method
  rate_seed: 0.05     # Initial rate parameter
  shape_seed: 1.0     # Initial shape parameter
  max_iter: 2000

# Moving block bootstrap prediction intervals
bootstrap:
  enabled: true
  replicates: 500
  block_length: auto  # auto = ceil(n ** (1/3)), or a fixed integer
  confidence: 0.95
  seed: null          # Set an integer for reproducible intervals
  workers: 1          # Worker processes (1 = serial)
  timeout: null       # Seconds per model before stopping early
  min_success_fraction: 0.9  # Below this, intervals are flagged - GM004

# Forecast options
forecast:
  horizon: 7          # Days past the last observation
  min_points: 5       # Minimum observations required - IV001

# Model selection
selection:
  grade_thresholds:   # Minimum R² per letter grade
    A: 0.99
    B: 0.95
    C: 0.90
    D: 0.80
  min_r_squared: 0.9  # Min acceptable R² - FR001

# Output options
output:
  format: json        # Export format: json or csv
  tables:             # Tables written in csv format
    - comparison
    - point_forecast
    - intervals
    - next_day
    - predictions
"""

    with open(filepath, "w") as f:
        f.write(content)

    return filepath
