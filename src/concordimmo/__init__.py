"""ConcordImmo - Rapprochement des fiches collectées avec le cadastre municipal."""

from concordimmo.config import ConcordImmoError, ConfigError, ConfigFileError, MatchingConfig

__all__ = [
    "__version__",
    "ConcordImmoError",
    "ConfigError",
    "ConfigFileError",
    "MatchingConfig",
]

__version__ = "0.1.0"
