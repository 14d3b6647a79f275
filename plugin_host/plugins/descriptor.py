"""
Plugin Descriptors

PluginDescriptor: immutable metadata parsed from a plugin's on-disk manifest.
DescriptorReader: locates and parses manifests at <root>/<type>/<name>/<manifest>.

Descriptors are read fresh on every lookup. The version field decides
whether an upgrade runs, so malformed numeric fields are rejected rather
than defaulted.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugin_host.constants import Maturity, PluginType
from plugin_host.exceptions import InvalidDescriptorError, PluginNotFoundError

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class PluginDescriptor:
    """
    Metadata describing one installable plugin.

    Attributes:
        type:          Plugin kind (module, block or theme).
        name:          Directory name of the plugin, unique within its type.
        version:       Integer build version, compared for upgrades.
        release:       Human-readable release string, e.g. "4.5.0".
        maturity:      Release maturity.
        requires:      Minimum host version, or None when unconstrained.
        dependencies:  Component -> minimum version, in declaration order.
        entrypoint:    Optional "package.module:Attribute" implementation path.
        path:          Directory holding the manifest.
    """

    type: PluginType
    name: str
    version: int
    release: str = ""
    maturity: Maturity = Maturity.STABLE
    requires: int | None = None
    dependencies: dict[str, int] = field(default_factory=dict)
    entrypoint: str | None = None
    path: Path | None = None

    @property
    def component(self) -> str:
        return f"{self.type.value}_{self.name}"

    @property
    def key(self) -> tuple[PluginType, str]:
        return (self.type, self.name)


def _parse_int(value: Any, plugin_type: PluginType, name: str, field_name: str) -> int:
    # bool is an int subclass; a manifest saying "version": true is malformed
    if isinstance(value, bool):
        raise InvalidDescriptorError(plugin_type.value, name, f"{field_name} must be an integer", field_name)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidDescriptorError(plugin_type.value, name, f"{field_name} must be an integer, got {value!r}", field_name)


class DescriptorReader:
    """Reads plugin manifests from a plugin root directory. Stateless."""

    def __init__(self, root: Path | str, manifest_filename: str = "version.json") -> None:
        self.root = Path(root)
        self.manifest_filename = manifest_filename

    def manifest_path(self, plugin_type: PluginType, name: str) -> Path:
        return self.root / plugin_type.value / name / self.manifest_filename

    def list_names(self, plugin_type: PluginType) -> list[str]:
        """Return candidate plugin directory names for a type, sorted."""
        type_dir = self.root / plugin_type.value
        if not type_dir.is_dir():
            return []
        return sorted(p.name for p in type_dir.iterdir() if p.is_dir() and not p.name.startswith((".", "_")))

    def read(self, plugin_type: PluginType | str, name: str) -> PluginDescriptor:
        """
        Parse the manifest for (type, name).

        Raises:
            PluginNotFoundError:    no manifest exists at the conventional path.
            InvalidDescriptorError: the manifest is unreadable or malformed.
        """
        plugin_type = PluginType(plugin_type)
        if not _NAME_RE.match(name):
            raise PluginNotFoundError(plugin_type.value, name)

        path = self.manifest_path(plugin_type, name)
        if not path.is_file():
            raise PluginNotFoundError(plugin_type.value, name)

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            raise InvalidDescriptorError(plugin_type.value, name, f"unreadable manifest: {exc}") from exc

        if not isinstance(raw, dict):
            raise InvalidDescriptorError(plugin_type.value, name, "manifest must be a JSON object")

        return self._parse(plugin_type, name, raw, path.parent)

    def _parse(self, plugin_type: PluginType, name: str, raw: dict[str, Any], path: Path) -> PluginDescriptor:
        component = raw.get("component")
        expected = f"{plugin_type.value}_{name}"
        if component is not None and component != expected:
            raise InvalidDescriptorError(
                plugin_type.value, name, f"component {component!r} does not match {expected!r}", "component"
            )

        if "version" not in raw:
            raise InvalidDescriptorError(plugin_type.value, name, "version is required", "version")
        version = _parse_int(raw["version"], plugin_type, name, "version")

        requires = raw.get("requires")
        if requires is not None:
            requires = _parse_int(requires, plugin_type, name, "requires")

        try:
            maturity = Maturity(raw.get("maturity", Maturity.STABLE.value))
        except ValueError as exc:
            raise InvalidDescriptorError(
                plugin_type.value, name, f"unknown maturity {raw.get('maturity')!r}", "maturity"
            ) from exc

        raw_deps = raw.get("dependencies") or {}
        if not isinstance(raw_deps, dict):
            raise InvalidDescriptorError(plugin_type.value, name, "dependencies must be an object", "dependencies")
        dependencies = {
            str(dep): _parse_int(min_version, plugin_type, name, f"dependencies.{dep}")
            for dep, min_version in raw_deps.items()
        }

        entrypoint = raw.get("entrypoint")
        if entrypoint is not None and (not isinstance(entrypoint, str) or ":" not in entrypoint):
            raise InvalidDescriptorError(
                plugin_type.value, name, "entrypoint must look like 'package.module:Attribute'", "entrypoint"
            )

        return PluginDescriptor(
            type=plugin_type,
            name=name,
            version=version,
            release=str(raw.get("release", "")),
            maturity=maturity,
            requires=requires,
            dependencies=dependencies,
            entrypoint=entrypoint,
            path=path,
        )
