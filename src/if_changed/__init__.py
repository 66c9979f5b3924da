"""if-changed package root."""

from if_changed.checker import Checker
from if_changed.exceptions import (
    BareRepositoryError,
    BlockParseError,
    ConfigError,
    IfChangedError,
    RepositoryError,
    RevisionError,
)
from if_changed.oracle import ChangeOracle, Match, Unmatched
from if_changed.parser import AnnotationBlock, BlockParser, Obligation

__all__ = [
    "__version__",
    "AnnotationBlock",
    "BareRepositoryError",
    "BlockParseError",
    "BlockParser",
    "ConfigError",
    "ChangeOracle",
    "Checker",
    "IfChangedError",
    "Match",
    "Obligation",
    "RepositoryError",
    "RevisionError",
    "Unmatched",
]

__version__ = "0.1.0"
