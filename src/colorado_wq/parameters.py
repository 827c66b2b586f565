# src/colorado_wq/parameters.py
from __future__ import annotations

from typing import NamedTuple


class ParameterAliases(NamedTuple):
    """Canonical parameter and the characteristic names WQP files it under."""
    code: str
    name: str
    synonyms: tuple[str, ...]


PARAMETERS: dict[str, ParameterAliases] = {
    # Cations
    "ca": ParameterAliases("ca", "Calcium", ("Calcium",)),
    "mg": ParameterAliases("mg", "Magnesium", ("Magnesium",)),
    "na": ParameterAliases("na", "Sodium", ("Sodium",)),
    "k": ParameterAliases("k", "Potassium", ("Potassium",)),

    # Anions
    "so4": ParameterAliases(
        "so4",
        "Sulfate",
        ("Sulfate", "Sulfate as SO4", "Sulfur Sulfate", "Total Sulfate"),
    ),
    "cl": ParameterAliases("cl", "Chloride", ("Chloride",)),
    "hco3": ParameterAliases(
        "hco3",
        "Bicarbonate",
        ("Alkalinity, bicarbonate", "Bicarbonate"),
    ),
}


def validate_parameter_dictionary(params: dict[str, ParameterAliases]) -> None:
    """Every code needs at least one non-blank synonym. Fail loudly otherwise."""
    for code, aliases in params.items():
        if code != aliases.code:
            raise ValueError(f"Parameter key '{code}' does not match its code '{aliases.code}'")
        if not aliases.synonyms or not all(s.strip() for s in aliases.synonyms):
            raise ValueError(f"Parameter '{code}' has no usable synonyms: {aliases.synonyms!r}")


validate_parameter_dictionary(PARAMETERS)


def list_parameters() -> list[str]:
    return list(PARAMETERS.keys())


def get_parameter(code: str) -> ParameterAliases:
    return PARAMETERS[code]


def get_synonyms(code: str) -> tuple[str, ...]:
    return PARAMETERS[code].synonyms


def canonical_name(code: str) -> str:
    return PARAMETERS[code].name


def validate_parameter(code: str) -> bool:
    return code in PARAMETERS


def synonym_lookup() -> dict[str, str]:
    """Map each provider characteristic name back to its parameter code."""
    return {s: p.code for p in PARAMETERS.values() for s in p.synonyms}
