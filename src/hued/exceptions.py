"""
Exception hierarchy for hued.

Lighting failures live in hued.lighting.adapter since they belong to the
bridge boundary, not to rule processing.
"""


class HuedError(Exception):
    """Base class for all hued errors."""


class ConfigError(HuedError):
    """A configuration source could not be read or parsed."""


class MissingRulesError(ConfigError):
    """The mandatory rules source does not exist."""


class RuleDefinitionError(ConfigError):
    """A rule entry is structurally invalid (e.g. both events and scene)."""


class SunDataError(HuedError):
    """Sunrise/sunset data could not be retrieved."""
