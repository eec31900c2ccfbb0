"""Load classes named in configuration (``package.module.Class`` or ``package.module:Class``)."""
from __future__ import annotations

import importlib
from typing import Any, Optional, Type

from streamline.core.exceptions import ConfigurationError


def load_class(path: str, expected: Optional[Type[Any]] = None) -> Type[Any]:
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ConfigurationError(f"'{path}' is not a fully qualified class name")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import module '{module_name}' for '{path}': {exc}") from exc
    cls = getattr(module, attr, None)
    if not isinstance(cls, type):
        raise ConfigurationError(f"'{path}' does not name a class")
    if expected is not None and not issubclass(cls, expected):
        raise ConfigurationError(f"'{path}' is not a {expected.__name__}")
    return cls


def new_instance(path: str, expected: Optional[Type[Any]] = None) -> Any:
    """Instantiate the class at *path* with no arguments."""
    return load_class(path, expected)()
