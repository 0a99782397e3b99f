"""Device catalog loading and validation for YAML-based family definitions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from devflasher.core.config import user_config_dirs
from devflasher.core.errors import CatalogLoadError, CatalogValidationError
from devflasher.core.model import DeviceFamily, DeviceProfile

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Codenames and property values must stay strings ("on", "no", "yes" ...).
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise CatalogValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class DeviceCatalog:
    profiles: dict[str, DeviceProfile]
    aliases: dict[str, str]
    warnings: tuple[str, ...] = ()

    def profile_for(self, codename: str) -> DeviceProfile:
        return self.profiles.get(codename) or DeviceProfile(codename=codename)

    def resolve_alias(self, product: str) -> str:
        return self.aliases.get(product, product)

    def codenames(self, family: DeviceFamily) -> tuple[str, ...]:
        return tuple(sorted(c for c, p in self.profiles.items() if p.family is family))


def _load_schema_validator() -> Any:
    schema_text = resources.files("devflasher.schemas").joinpath("devices.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogLoadError(f"Could not read catalog file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise CatalogValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise CatalogValidationError(f"Catalog file {path} must contain a mapping at root")
    return loaded


def _build_entries(
    doc: dict[str, Any], source: Path | Traversable
) -> tuple[dict[str, DeviceProfile], dict[str, str]]:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise CatalogValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    aliases: dict[str, str] = {}
    for product, codename in doc.get("aliases", {}).items():
        product = str(product).strip()
        codename = codename.strip()
        if product == codename:
            raise CatalogValidationError(f"Alias '{product}' in {source} maps to itself")
        aliases[product] = codename

    profiles: dict[str, DeviceProfile] = {}
    for codename, spec in doc.get("devices", {}).items():
        codename = str(codename).strip()
        spec = spec or {}
        profiles[codename] = DeviceProfile(
            codename=codename,
            family=DeviceFamily(spec.get("family", DeviceFamily.STANDARD.value)),
            replug=spec.get("replug"),
        )
    return profiles, aliases


def _iter_packaged_catalog_paths() -> list[Traversable]:
    catalog_root = resources.files("devflasher.catalog")
    return [item for item in catalog_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_catalog_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in user_config_dirs():
        devices_dir = directory / "devices"
        if not devices_dir.is_dir():
            continue
        paths.extend(sorted(p for p in devices_dir.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_catalog() -> DeviceCatalog:
    profiles: dict[str, DeviceProfile] = {}
    aliases: dict[str, str] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_catalog_paths(), key=lambda p: p.name):
        loaded_profiles, loaded_aliases = _build_entries(_read_yaml(path), path)
        profiles.update(loaded_profiles)
        aliases.update(loaded_aliases)

    for path in _iter_user_catalog_paths():
        loaded_profiles, loaded_aliases = _build_entries(_read_yaml(path), path)
        for codename in loaded_profiles:
            if codename in profiles:
                warning = f"User catalog entry '{codename}' overrides packaged entry"
                LOGGER.warning(warning)
                warnings.append(warning)
        for product in loaded_aliases:
            if product in aliases:
                warning = f"User alias '{product}' overrides packaged alias"
                LOGGER.warning(warning)
                warnings.append(warning)
        profiles.update(loaded_profiles)
        aliases.update(loaded_aliases)

    return DeviceCatalog(profiles=profiles, aliases=aliases, warnings=tuple(warnings))
