"""Service package exports."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = ["customers", "network"]


def __getattr__(name: str) -> Any:
    if name in __all__:
        return importlib.import_module(f"spectra.services.{name}")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
