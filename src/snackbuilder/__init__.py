from __future__ import annotations

from snackbuilder.dependencies import derive_dependencies
from snackbuilder.models import DependencyMap, FileEntry, FileMap
from snackbuilder.parser import parse
from snackbuilder.scaffold import augment
from snackbuilder.utils import ValidationError

__version__ = "0.1.0"

__all__ = [
    "DependencyMap",
    "FileEntry",
    "FileMap",
    "ValidationError",
    "augment",
    "derive_dependencies",
    "parse",
]
