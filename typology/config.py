"""
Pipeline configuration.

Paths, field names, variable lists and exclusion policy are read from a
YAML file rather than hard-coded, so the same pipeline can be pointed at
a new dataset release without code changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields as dataclass_fields
from pathlib import Path
from typing import Optional

import yaml

from .recodes import VARIABLES


@dataclass
class FieldMap:
    """
    Source column names (after lower-casing).

    Defaults follow EU-SILC cross-sectional variable names.
    """

    country: str = "rb020"
    sex: str = "rb090"
    birth_year: str = "rb080"
    age: str = "rx010"
    household_type: str = "hx060"
    typology_source: str = "hhtyp"
    fht: str = "fht"
    poverty: str = "hx080"
    deprivation: str = "sev_dep"


@dataclass
class PipelineConfig:
    """
    Configuration for one run of the typology pipeline.

    Attributes:
        input_path: Microdata file (.parquet, .csv or .dta)
        output_path: Workbook for prevalence and conditional-mean sheets
        appendix_path: Workbook holding the cross-tab appendix
        year: Year tag used in sheet names
        reference_year: Year used to derive age from birth year
        weight_field: Survey weight column
        output_variables: Recoded categorical variables to tabulate
        input_variables: Risk indicators averaged within each category
        excluded_countries: Country codes always dropped
        detect_excluded_countries: Also drop countries with no fht data
        fields: Source column names
    """

    input_path: Path
    output_path: Path
    appendix_path: Path
    year: int
    weight_field: str = "rb050"
    output_variables: list[str] = field(
        default_factory=lambda: ["hh_eurostat", "fht5"]
    )
    input_variables: list[str] = field(
        default_factory=lambda: ["arop", "smsd"]
    )
    excluded_countries: list[str] = field(default_factory=list)
    detect_excluded_countries: bool = True
    reference_year: Optional[int] = None
    fields: FieldMap = field(default_factory=FieldMap)

    def __post_init__(self):
        self.input_path = Path(self.input_path)
        self.output_path = Path(self.output_path)
        self.appendix_path = Path(self.appendix_path)
        self.year = int(self.year)
        if self.reference_year is None:
            self.reference_year = self.year

        if not self.output_variables:
            raise ValueError("At least one output variable is required.")
        unknown = [v for v in self.output_variables if v not in VARIABLES]
        if unknown:
            raise ValueError(
                f"Unknown output variables: {unknown}. "
                f"Valid variables: {sorted(VARIABLES)}"
            )
        self.excluded_countries = [str(c) for c in self.excluded_countries]

    @property
    def year_tag(self) -> str:
        return str(self.year)


REQUIRED_KEYS = ("input_path", "output_path", "appendix_path", "year")


def config_from_dict(raw: dict, base_dir: Optional[Path] = None) -> PipelineConfig:
    """
    Build a PipelineConfig from a plain mapping.

    Relative paths are resolved against ``base_dir`` when given.

    Raises:
        ValueError: If a required key is missing or a key is unknown
    """
    raw = dict(raw or {})
    missing = [k for k in REQUIRED_KEYS if k not in raw]
    if missing:
        raise ValueError(f"Missing required config keys: {missing}")

    known = {f.name for f in dataclass_fields(PipelineConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    field_names = {f.name for f in dataclass_fields(FieldMap)}
    field_overrides = raw.pop("fields", None) or {}
    bad_fields = set(field_overrides) - field_names
    if bad_fields:
        raise ValueError(f"Unknown field names: {sorted(bad_fields)}")
    raw["fields"] = FieldMap(
        **{k: str(v).lower() for k, v in field_overrides.items()}
    )

    if "weight_field" in raw:
        raw["weight_field"] = str(raw["weight_field"]).lower()

    if base_dir is not None:
        for key in ("input_path", "output_path", "appendix_path"):
            path = Path(raw[key]).expanduser()
            if not path.is_absolute():
                path = base_dir / path
            raw[key] = path

    return PipelineConfig(**raw)


def load_config(config_path: str | Path) -> PipelineConfig:
    """Read a YAML config file into a PipelineConfig."""
    path = Path(config_path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found at: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return config_from_dict(raw, base_dir=path.parent)
