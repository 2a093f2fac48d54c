"""YAML loader for organization manifests."""

from __future__ import annotations

from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .models import Organization
from .validation import ManifestValidationError, validate_manifest

YAML_VERSION = (1, 2)


def load_manifest(path: Path | str) -> Organization:
    """Parse and validate a YAML manifest using a YAML 1.2 compliant loader."""
    yaml = _yaml()
    path_obj = Path(path)

    try:
        text = path_obj.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestValidationError([f"failed to read {path_obj}: {exc}"]) from exc

    try:
        loaded = yaml.load(text)
    except YAMLError as exc:
        raise ManifestValidationError([f"failed to parse YAML: {exc}"]) from exc

    if loaded is None:
        raise ManifestValidationError(["manifest file is empty"])

    try:
        org = msgspec.convert(loaded, type=Organization)
    except msgspec.ValidationError as exc:
        raise ManifestValidationError([f"schema validation failed: {exc}"]) from exc

    return validate_manifest(org)


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
