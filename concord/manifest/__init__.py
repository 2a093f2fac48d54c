"""Organization manifest: typed models, YAML loading and validation.

Validate and load a manifest::

    >>> from concord.manifest import load_manifest
    >>> org = load_manifest("examples/acme.yaml")
    >>> [repo.name for repo in org.repositories]
    ['widgets', 'gadgets']
"""

from __future__ import annotations

from .loader import load_manifest
from .models import Branch, Organization, People, Protection, Repository, Team, is_set
from .validation import ManifestValidationError, validate_manifest

__all__ = [
    "Branch",
    "ManifestValidationError",
    "Organization",
    "People",
    "Protection",
    "Repository",
    "Team",
    "is_set",
    "load_manifest",
    "validate_manifest",
]
