"""Reconcile a GitHub organization against a declarative manifest."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
