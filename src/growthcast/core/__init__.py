"""Core growth curve models, fitting, selection and bootstrap intervals."""

from .models import (
    EXPONENTIAL,
    GOMPERTZ,
    GROWTH_MODELS,
    LOGISTIC,
    RICHARDS,
    FailureReason,
    FitFailure,
    FittedModel,
    GrowthModel,
    ModelKind,
    get_model,
)
from .fitting import FittingConfig, ModelFitSettings, NonlinearFitter
from .selection import ModelComparison, SelectionScore, compare_models, grade_fit, score
from .bootstrap import BootstrapConfig, BootstrapInterval, MovingBlockBootstrap
from .prediction import Prediction, PredictionAggregator
from .start_values import StartValueUndefined

__all__ = [
    "EXPONENTIAL",
    "GOMPERTZ",
    "GROWTH_MODELS",
    "LOGISTIC",
    "RICHARDS",
    "FailureReason",
    "FitFailure",
    "FittedModel",
    "GrowthModel",
    "ModelKind",
    "get_model",
    "FittingConfig",
    "ModelFitSettings",
    "NonlinearFitter",
    "ModelComparison",
    "SelectionScore",
    "compare_models",
    "grade_fit",
    "score",
    "BootstrapConfig",
    "BootstrapInterval",
    "MovingBlockBootstrap",
    "Prediction",
    "PredictionAggregator",
    "StartValueUndefined",
]
