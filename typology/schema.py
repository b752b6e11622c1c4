"""
Declared source fields for survey microdata.

The schema is checked once, right after column names are normalized,
so later stages can index columns without defensive lookups.
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from .config import FieldMap


class MissingFieldError(ValueError):
    """Raised when a required source field is absent or incomplete."""
    pass


@dataclass(frozen=True)
class SurveySchema:
    """
    Required and optional source fields.

    Attributes:
        required: Fields the pipeline cannot run without
        optional: Fields whose derivations are skipped when absent
    """

    required: tuple[str, ...]
    optional: tuple[str, ...]

    @classmethod
    def from_fields(cls, fields: FieldMap, weight_field: str) -> "SurveySchema":
        return cls(
            required=(
                fields.country,
                weight_field,
                fields.household_type,
                fields.typology_source,
                fields.fht,
                fields.poverty,
                fields.deprivation,
            ),
            optional=(fields.sex, fields.birth_year, fields.age),
        )

    def check(self, df: pd.DataFrame) -> list[str]:
        """
        Check columns against the schema.

        Returns:
            Optional fields that are absent

        Raises:
            MissingFieldError: If any required field is absent
        """
        missing = [c for c in self.required if c not in df.columns]
        if missing:
            raise MissingFieldError(
                f"Missing required fields: {missing}. "
                f"Available: {sorted(df.columns)}"
            )

        return self.check_optional(df)

    def check_optional(self, df: pd.DataFrame) -> list[str]:
        """Return optional fields that are absent."""
        return [c for c in self.optional if c not in df.columns]


def validate_records(
    df: pd.DataFrame,
    fields: FieldMap,
    weight_field: str,
) -> None:
    """
    Check values of the fields every record needs.

    Raises:
        MissingFieldError: If country, weight or typology codes have gaps
        ValueError: If any weight is not strictly positive
    """
    core = [
        fields.country,
        weight_field,
        fields.household_type,
        fields.typology_source,
        fields.fht,
    ]
    gaps = {col: int(n) for col, n in df[core].isna().sum().items() if n > 0}
    if gaps:
        raise MissingFieldError(f"Missing values in required fields: {gaps}")

    weights = pd.to_numeric(df[weight_field], errors="coerce")
    if weights.isna().any():
        raise ValueError(f"Non-numeric values in weight field '{weight_field}'")
    bad = int((weights <= 0).sum())
    if bad:
        raise ValueError(
            f"{bad} records have non-positive weight in '{weight_field}'"
        )
