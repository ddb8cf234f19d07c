from dataclasses import dataclass

from starlette.requests import Request


@dataclass
class Route:
    root: str
    route: str
    query: str = ""

    def to_string(self) -> str:
        url = self.root + self.route
        if self.query:
            url += "?" + self.query
        return url


class Uri:
    """Request path state relative to the application root."""

    def __init__(self) -> None:
        self.root = ""
        self._path = ""
        self.query = ""
        self.initialized = False

    def init(self, request: Request) -> "Uri":
        self.root = request.scope.get("root_path", "").rstrip("/")
        path = request.url.path
        if self.root and path.startswith(self.root):
            path = path[len(self.root):]
        self._path = path
        self.query = request.url.query
        self.initialized = True
        return self

    def path(self) -> str:
        return self._path

    def current_route(self) -> Route:
        route = self._path.rstrip("/") or "/"
        return Route(root=self.root, route=route, query=self.query)
