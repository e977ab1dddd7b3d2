"""Configuration loading and validation for YAML-based iiocmdsrv settings."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from iiocmdsrv.core.errors import ConfigLoadError, ConfigValidationError
from iiocmdsrv.core.model import ListenSpec, ProvisioningSpec, ServerConfig, SysfsLayout

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedConfig:
    config: ServerConfig
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("iiocmdsrv.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "iiocmdsrv/config.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _build_config(doc: dict[str, Any], source: str) -> ServerConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    provisioning = doc["provisioning"]
    listen = doc["listen"]
    return ServerConfig(
        layout=SysfsLayout(
            sysfs_root=Path(doc["sysfs_root"]),
            dev_root=Path(doc["dev_root"]),
            debugfs_root=Path(doc["debugfs_root"]),
            device_prefix=doc["device_prefix"],
        ),
        max_transfer_bytes=doc.get("max_transfer_bytes"),
        provisioning=ProvisioningSpec(
            script=Path(provisioning["script"]),
            marker_dir=Path(provisioning["marker_dir"]),
        ),
        listen=ListenSpec(host=listen["host"], port=int(listen["port"])),
    )


def load_config(path: str | os.PathLike[str] | None = None) -> LoadedConfig:
    """Load packaged defaults overlaid by the user (or explicit) config file."""
    warnings: list[str] = []
    doc = _read_yaml(resources.files("iiocmdsrv.defaults").joinpath("config.yaml"))

    if path is not None:
        override_path = Path(path)
        if not override_path.is_file():
            raise ConfigLoadError(f"Config file {override_path} does not exist")
    else:
        override_path = user_config_path()

    source = "packaged defaults"
    if override_path.is_file():
        override = _read_yaml(override_path)
        if override:
            LOGGER.info("config %s overrides packaged defaults: %s", override_path, ", ".join(sorted(override)))
        doc = _merge(doc, override)
        source = str(override_path)

    config = _build_config(doc, source)
    if config.max_transfer_bytes is None:
        warning = "max_transfer_bytes is null; buffer transfers are unbounded"
        LOGGER.warning(warning)
        warnings.append(warning)
    return LoadedConfig(config=config, warnings=tuple(warnings))
