"""
Household typology tables from survey microdata.

Derives Eurostat and simplified FHT household typologies, then computes
survey-weighted prevalence and poverty/deprivation risk by country, with
a pooled row across all included countries.
"""

from .config import FieldMap, PipelineConfig, load_config
from .schema import MissingFieldError, SurveySchema
from .loader import load_records, generate_synthetic_survey
from .recodes import (
    Category,
    CategoricalVariable,
    HH_EUROSTAT,
    FHT5,
    VARIABLES,
    recode,
    recode_variables,
)
from .aggregate import (
    AggregationResult,
    POOLED_LABEL,
    weighted_prevalence,
    weighted_conditional_mean,
)
from .pipeline import run_pipeline

__all__ = [
    # Config
    "FieldMap",
    "PipelineConfig",
    "load_config",
    # Loader
    "MissingFieldError",
    "SurveySchema",
    "load_records",
    "generate_synthetic_survey",
    # Recodes
    "Category",
    "CategoricalVariable",
    "HH_EUROSTAT",
    "FHT5",
    "VARIABLES",
    "recode",
    "recode_variables",
    # Aggregation
    "AggregationResult",
    "POOLED_LABEL",
    "weighted_prevalence",
    "weighted_conditional_mean",
    # Pipeline
    "run_pipeline",
]
