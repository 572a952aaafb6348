"""Settings loading and validation for the YAML settings file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from libremon.core.errors import SettingsLoadError, SettingsValidationError
from libremon.core.model import MINIMUM_SLOPE, CalibrationModel

LOGGER = logging.getLogger(__name__)

DEFAULT_DEVICE_LABEL = "LibreMonitor"


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SettingsValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class UploadSettings:
    enabled: bool = False
    device_label: str = DEFAULT_DEVICE_LABEL


@dataclass(frozen=True)
class Settings:
    calibration: CalibrationModel = field(default_factory=CalibrationModel)
    upload: UploadSettings = field(default_factory=UploadSettings)
    warnings: tuple[str, ...] = ()


def _load_schema_validator() -> Any:
    schema_text = resources.files("libremon.schemas").joinpath("settings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def settings_path() -> Path:
    override = os.environ.get("LIBREMON_SETTINGS")
    if override:
        return Path(override)
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "libremon" / "settings.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsLoadError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SettingsValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SettingsValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _build_settings(doc: dict[str, Any], source: Path) -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SettingsValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    warnings: list[str] = []
    calibration_doc = doc.get("calibration", {})
    calibration = CalibrationModel(
        offset=float(calibration_doc.get("offset", 0.0)),
        slope=float(calibration_doc.get("slope", 1.0)),
    )
    if calibration.slope <= MINIMUM_SLOPE:
        warning = f"Calibration slope {calibration.slope} in {source} is at or below {MINIMUM_SLOPE}; using 1.0"
        LOGGER.warning(warning)
        warnings.append(warning)
        calibration = calibration.normalized()

    upload_doc = doc.get("upload", {})
    upload = UploadSettings(
        enabled=bool(upload_doc.get("enabled", False)),
        device_label=upload_doc.get("device_label", DEFAULT_DEVICE_LABEL),
    )
    return Settings(calibration=calibration, upload=upload, warnings=tuple(warnings))


def load_settings(path: Path | None = None) -> Settings:
    path = path or settings_path()
    if not path.exists():
        LOGGER.debug("No settings file at %s, using defaults", path)
        return Settings()
    return _build_settings(_read_yaml(path), path)


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    path = path or settings_path()
    doc = {
        "calibration": {
            "offset": settings.calibration.offset,
            "slope": settings.calibration.slope,
        },
        "upload": {
            "enabled": settings.upload.enabled,
            "device_label": settings.upload.device_label,
        },
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
    except OSError as exc:
        raise SettingsLoadError(f"Could not write settings file {path}: {exc}") from exc
    return path
