import threading

from preflight.services.plugins import PluginRegistry

BUILTIN_PAGE_TYPES = {
    "default": "Standard page",
    "modular": "Page assembled from child modules",
}


class PageRegistry:
    """Registers the page tree lazily; content is not read until a page is requested."""

    def __init__(self, plugins: PluginRegistry) -> None:
        self.plugins = plugins
        self.types: dict[str, str] = {}
        self._lock = threading.Lock()
        self.registered = False

    def register(self) -> "PageRegistry":
        with self._lock:
            if not self.registered:
                types = dict(BUILTIN_PAGE_TYPES)
                types.update(self.plugins.page_types())
                self.types = types
                self.registered = True
        return self
