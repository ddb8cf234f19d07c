import graphlib
import importlib
import threading
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any

import jsonschema
import structlog

from preflight.errors import PluginLoadError

log = structlog.get_logger()

ENTRY_POINT_GROUP = "preflight.plugins"


class Plugin:
    """Base class for plugins.

    Subclasses may declare ``config_schema`` (JSON Schema for the plugin's
    config section) and ``page_types`` (page type name -> description).
    """

    config_schema: dict[str, Any] = {}
    page_types: dict[str, str] = {}

    def __init__(self, name: str, config: dict[str, Any]) -> None:
        self.name = name
        self.config = config

    def boot(self, loaded: dict[str, "Plugin"]) -> None:
        """Called once; ``loaded`` holds every plugin booted so far, dependencies included."""


@dataclass
class PluginManifest:
    name: str
    class_path: str | None
    enabled: bool = True
    dependencies: list[str] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)


def _import_class(path: str) -> type:
    module_name, _, attr = path.partition(":")
    if not attr:
        raise ImportError(f"'{path}' is not in 'module:attr' form")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class PluginRegistry:
    def __init__(self) -> None:
        self.manifest: dict[str, PluginManifest] = {}
        self.plugins: dict[str, Plugin] = {}
        self._lock = threading.Lock()
        self._loaded = False

    def setup(self, config) -> None:
        """Build the manifest from config and installed entry points.

        Plugin code is not imported here.
        """
        if self._loaded:
            return
        manifest: dict[str, PluginManifest] = {}
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            manifest[ep.name] = PluginManifest(name=ep.name, class_path=ep.value)

        for name, section in (config.get("plugins", {}) or {}).items():
            section = dict(section)
            enabled = section.pop("enabled", True)
            class_path = section.pop("class", None)
            dependencies = section.pop("dependencies", [])
            existing = manifest.get(name)
            manifest[name] = PluginManifest(
                name=name,
                class_path=class_path or (existing.class_path if existing else None),
                enabled=enabled,
                dependencies=list(dependencies),
                config=section,
            )
        self.manifest = manifest

    def load_order(self) -> list[str]:
        enabled = {name: m for name, m in self.manifest.items() if m.enabled}
        sorter: graphlib.TopologicalSorter = graphlib.TopologicalSorter()
        for name, m in enabled.items():
            for dep in m.dependencies:
                if dep not in enabled:
                    raise PluginLoadError(name, f"missing dependency '{dep}'")
            sorter.add(name, *m.dependencies)
        try:
            return list(sorter.static_order())
        except graphlib.CycleError as e:
            raise PluginLoadError(e.args[1][0], "dependency cycle: " + " -> ".join(e.args[1])) from e

    def init(self, config) -> None:
        with self._lock:
            if self._loaded:
                return
            plugins: dict[str, Plugin] = {}
            for name in self.load_order():
                plugins[name] = self._load(self.manifest[name], plugins)
            self.plugins = plugins
            self._loaded = True
        log.info("plugins_loaded", plugins=list(self.plugins))

    def _load(self, manifest: PluginManifest, loaded: dict[str, Plugin]) -> Plugin:
        if manifest.class_path is None:
            raise PluginLoadError(manifest.name, "no plugin class configured")
        try:
            cls = _import_class(manifest.class_path)
        except (ImportError, AttributeError) as e:
            raise PluginLoadError(manifest.name, str(e)) from e

        if cls.config_schema:
            try:
                jsonschema.validate(instance=manifest.config, schema=cls.config_schema)
            except jsonschema.ValidationError as e:
                raise PluginLoadError(manifest.name, f"config validation failed: {e.message}") from e

        plugin = cls(manifest.name, manifest.config)
        try:
            plugin.boot(loaded)
        except Exception as e:
            raise PluginLoadError(manifest.name, f"{type(e).__name__}: {e}") from e
        return plugin

    def page_types(self) -> dict[str, str]:
        types: dict[str, str] = {}
        for plugin in self.plugins.values():
            types.update(plugin.page_types)
        return types

    @property
    def loaded(self) -> bool:
        return self._loaded
