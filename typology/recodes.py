"""
Declarative recodes for household typology variables.

Each categorical variable is a single table of (raw codes, output code,
label) entries. The recoder and the report writer both read from it, so
sheet headers always follow the recode definition.

Example:
    >>> recode(pd.Series([5, 6, 9, 11, 99]), HH_EUROSTAT).tolist()
    [1, 2, 3, 4, 5]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pandas as pd


@dataclass(frozen=True)
class Category:
    """One output category and the raw codes that map to it."""

    code: int
    label: str
    raw_codes: tuple[int, ...] = ()


@dataclass(frozen=True)
class CategoricalVariable:
    """
    A derived categorical variable.

    Attributes:
        name: Output column name
        source: Config field holding the raw code (attribute of FieldMap)
        categories: Output categories in code order
        catch_all: Code receiving every raw code not listed elsewhere
        description: Human-readable description
    """

    name: str
    source: str
    categories: tuple[Category, ...]
    catch_all: int
    description: str = ""
    _lookup: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        codes = [c.code for c in self.categories]
        if codes != sorted(codes) or len(set(codes)) != len(codes):
            raise ValueError(f"{self.name}: category codes must be unique and ordered")
        if self.catch_all not in codes:
            raise ValueError(f"{self.name}: catch-all {self.catch_all} is not a category")

        lookup = {}
        for category in self.categories:
            for raw in category.raw_codes:
                if raw in lookup:
                    raise ValueError(f"{self.name}: raw code {raw} mapped twice")
                lookup[raw] = category.code
        object.__setattr__(self, "_lookup", lookup)

    @property
    def codes(self) -> list[int]:
        return [c.code for c in self.categories]

    @property
    def labels(self) -> list[str]:
        return [c.label for c in self.categories]

    @property
    def value_labels(self) -> dict[int, str]:
        return {c.code: c.label for c in self.categories}

    def code_for(self, raw) -> int:
        """Map a single raw code to its output code."""
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return self.catch_all
        return self._lookup.get(value, self.catch_all)


HH_EUROSTAT = CategoricalVariable(
    name="hh_eurostat",
    source="household_type",
    description="Eurostat household typology",
    categories=(
        Category(1, "Single person", (5,)),
        Category(2, "Couple without children", (6, 7)),
        Category(3, "Single parent", (9,)),
        Category(4, "Couple with children", (10, 11, 12)),
        Category(5, "Other"),
    ),
    catch_all=5,
)

# Labels match HH_EUROSTAT by name only; the groupings differ.
FHT5 = CategoricalVariable(
    name="fht5",
    source="fht",
    description="Simplified families in households typology",
    categories=(
        Category(1, "Single person", (1,)),
        Category(2, "Couple without children", (2, 11)),
        Category(3, "Single parent", (3, 4, 7, 8)),
        Category(4, "Couple with children", (5, 6, 9, 10)),
        Category(5, "Other", (12,)),
    ),
    catch_all=5,
)

VARIABLES: dict[str, CategoricalVariable] = {
    HH_EUROSTAT.name: HH_EUROSTAT,
    FHT5.name: FHT5,
}

# Pass-through indicators: output name -> FieldMap attribute
INDICATORS: dict[str, str] = {
    "arop": "poverty",
    "smsd": "deprivation",
}


def recode(raw: pd.Series, variable: CategoricalVariable) -> pd.Series:
    """
    Map raw codes to the variable's output codes.

    Total: missing and unlisted codes go to the catch-all category.
    """
    numeric = pd.to_numeric(raw, errors="coerce")
    return numeric.map(variable.code_for).astype(int).rename(variable.name)


def recode_variables(
    df: pd.DataFrame,
    fields,
    variables: Optional[list[CategoricalVariable]] = None,
) -> pd.DataFrame:
    """
    Append recoded typology columns and pass-through indicators.

    Args:
        df: Normalized microdata
        fields: FieldMap naming the source columns
        variables: Variables to derive (default: all known variables)

    Returns:
        New DataFrame with one column per variable plus the indicators
    """
    if variables is None:
        variables = list(VARIABLES.values())

    result = df.copy()
    for variable in variables:
        source_col = getattr(fields, variable.source)
        result[variable.name] = recode(df[source_col], variable)

    for name, attr in INDICATORS.items():
        source_col = getattr(fields, attr)
        result[name] = pd.to_numeric(df[source_col], errors="coerce")

    return result
