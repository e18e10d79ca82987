"""
URL to route resolution.

Two layers live here:
- Router: the host's route table (reverse / parse / normalize). The
  StarletteRouter implementation reads the routes of a FastAPI or
  Starlette app, where a route named "Users:login" stands for the
  `login` action of the `Users` controller.
- RouteResolver: turns whatever URL a caller asks about into a
  RouteMatch, and decides how bad a failure to do so is.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import SplitResult, urlencode, urlsplit

from starlette.routing import BaseRoute, Match, NoMatchFound

from usersauth.core.models import RouteMatch

logger = logging.getLogger(__name__)

_DUPLICATE_SLASHES = re.compile(r"/{2,}")

_DEFAULT_PORTS = {"http": 80, "https": 443}


class RouteNotFound(LookupError):
    """No registered route matches a URL."""

    def __init__(self, url: str):
        super().__init__(f"No route matches '{url}'")
        self.url = url


class UnresolvableRouteError(LookupError):
    """
    A URL asked about cannot be resolved to a route.

    `is_internal` is True when the URL points into this application
    (it starts with "/" once normalized). Internal failures must be
    surfaced, never read as a plain "not authorized".
    """

    def __init__(self, url: str, normalized: str, is_internal: bool):
        kind = "internal" if is_internal else "external"
        super().__init__(f"Cannot resolve {kind} url '{url}' (normalized: '{normalized}')")
        self.url = url
        self.normalized = normalized
        self.is_internal = is_internal


# =============================================================================
# Router interface
# =============================================================================


class Router(ABC):
    """The host application's route table."""

    @abstractmethod
    def reverse(self, descriptor: Mapping[str, Any]) -> str:
        """Build the URL of a route descriptor (controller, action, params)."""
        pass

    @abstractmethod
    def parse(self, url: str) -> RouteMatch:
        """Match a normalized URL. Raises RouteNotFound."""
        pass

    @abstractmethod
    def normalize(self, url: str) -> str:
        """Strip this application's scheme, host and base path from a URL."""
        pass


def route_name(controller: str, action: str) -> str:
    """Name under which a controller action is registered."""
    return f"{controller}:{action}" if controller else action


def split_route_name(name: str) -> tuple[str, str]:
    controller, sep, action = name.partition(":")
    if not sep:
        return "", name
    return controller, action


class StarletteRouter(Router):
    """
    Router over Starlette/FastAPI routes.

    `source` is an app, an APIRouter or a plain list of routes. Apps and
    routers are read on every call so routes included after this object
    was built are still seen.
    """

    def __init__(self, source: Any, base_url: str = ""):
        self._source = source
        base = urlsplit(base_url.rstrip("/"))
        self._base_scheme = base.scheme or "http"
        self._base_host = (base.hostname or "").rstrip(".")
        self._base_port = base.port or _DEFAULT_PORTS.get(self._base_scheme)
        self._base_path = base.path.rstrip("/")

    @property
    def routes(self) -> Sequence[BaseRoute]:
        if isinstance(self._source, Sequence):
            return self._source
        return self._source.routes

    # -------------------------------------------------------------------------
    # reverse
    # -------------------------------------------------------------------------

    def reverse(self, descriptor: Mapping[str, Any]) -> str:
        params = dict(descriptor)
        controller = params.pop("controller", "") or ""
        action = params.pop("action", "") or ""
        query = params.pop("?", None)
        name = route_name(controller, action)

        path = self._url_path_for(name, params)
        if query:
            path = f"{path}?{urlencode(query, doseq=True)}"
        return path

    def _url_path_for(self, name: str, params: dict[str, Any]) -> str:
        if not isinstance(self._source, Sequence):
            # The app builds paths through its own mounts and included routers
            return str(self._source.url_path_for(name, **params))

        for route in self.routes:
            try:
                return str(route.url_path_for(name, **params))
            except NoMatchFound:
                continue
        raise NoMatchFound(name, params)

    # -------------------------------------------------------------------------
    # parse
    # -------------------------------------------------------------------------

    def parse(self, url: str) -> RouteMatch:
        parts = urlsplit(url)
        if parts.scheme or parts.netloc:
            # Not ours once normalize() kept the host
            raise RouteNotFound(url)
        scope = {
            "type": "http",
            "path": parts.path or "/",
            "root_path": "",
            "method": "GET",
            "headers": [],
            "query_string": b"",
            "path_params": {},
        }

        found = self._find(self.routes, scope)
        if found is None:
            raise RouteNotFound(url)
        route, child_scope, _ = found
        return self._to_match(route, child_scope)

    def _find(
        self,
        routes: Sequence[BaseRoute],
        scope: dict[str, Any],
    ) -> tuple[BaseRoute, dict[str, Any], Match] | None:
        """
        Find the endpoint route serving `scope`.

        Mounts and included routers are descended into. A full match wins
        over one that only fails on the HTTP method.
        """
        partial = None
        for route in routes:
            match, child_scope = route.matches(scope)
            if match == Match.NONE:
                continue

            children = getattr(route, "routes", None)
            if children is None:
                found = (route, child_scope, match)
            else:
                found = self._find(children, {**scope, **child_scope})
                if found is None:
                    # Included routes may carry the full path already
                    found = self._find(children, scope)
                if found is None:
                    continue

            if found[2] == Match.FULL:
                return found
            if partial is None:
                partial = found

        return partial

    @staticmethod
    def _to_match(route: BaseRoute, child_scope: dict[str, Any]) -> RouteMatch:
        controller, action = split_route_name(getattr(route, "name", "") or "")
        return RouteMatch(
            controller=controller,
            action=action,
            params=child_scope.get("path_params", {}),
        )

    # -------------------------------------------------------------------------
    # normalize
    # -------------------------------------------------------------------------

    def normalize(self, url: str) -> str:
        url = url.strip()
        parts = urlsplit(url)

        if parts.scheme or url.startswith("//"):
            if not self._is_own(parts):
                return url
        elif not url:
            return "/"

        path = _DUPLICATE_SLASHES.sub("/", parts.path)
        if self._base_path and (
            path == self._base_path or path.startswith(self._base_path + "/")
        ):
            path = path[len(self._base_path):]
        if not path.startswith("/"):
            path = "/" + path
        if len(path) > 1:
            path = path.rstrip("/")
        if parts.query:
            path = f"{path}?{parts.query}"
        return path

    def _is_own(self, parts: SplitResult) -> bool:
        """
        Whether an absolute URL points at this application.

        Host names are compared without userinfo, and a port written out
        as the scheme default is the same as no port.
        """
        if parts.scheme not in ("", "http", "https") or not self._base_host:
            return False
        if (parts.hostname or "").rstrip(".") != self._base_host:
            return False
        try:
            port = parts.port
        except ValueError:
            # Unreadable port on our host: still checked as ours
            return True
        if port is None:
            return True
        scheme = parts.scheme or self._base_scheme
        return port in (self._base_port, _DEFAULT_PORTS.get(scheme))


# =============================================================================
# Resolver
# =============================================================================


class RouteResolver:
    """Resolves URL strings and route descriptors to a RouteMatch."""

    def __init__(self, router: Router):
        self.router = router

    def resolve(self, url: str | Mapping[str, Any], controller: str | None = None) -> RouteMatch:
        """
        Resolve `url` to the route that would handle it.

        Raises:
            UnresolvableRouteError: a URL string matched no route
        """
        return self.resolve_request(url, controller)[1]

    def resolve_request(
        self,
        url: str | Mapping[str, Any],
        controller: str | None = None,
    ) -> tuple[str, RouteMatch]:
        """
        Like resolve(), but also return the URL the match was made for.

        Descriptors are reversed first; any failure on that path is a
        programming error and propagates as raised by the router.
        `controller` fills in a descriptor that names no controller.
        """
        if isinstance(url, Mapping):
            descriptor = dict(url)
            if controller and not descriptor.get("controller"):
                descriptor["controller"] = controller
            request_url = self.router.reverse(descriptor)
            return request_url, self.router.parse(request_url)

        normalized = self.router.normalize(url)
        try:
            return url, self.router.parse(normalized)
        except RouteNotFound as exc:
            is_internal = normalized.startswith("/")
            if is_internal:
                logger.warning(f"Internal url '{url}' does not match any route")
            raise UnresolvableRouteError(url, normalized, is_internal) from exc
