"""
RoleGate - Route Matcher

Resolves a concrete request path to at most one permission record.

Phases:
1. Exact   - indexed lookup of each candidate path as a literal URL
2. Pattern - scan of compiled templates in ascending permission id

First match wins in both phases. Compiled templates are kept in an arena
keyed by permission id and rebuilt when the catalog changes or grows older
than the configured refresh interval.
"""

import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from core.access.models import Permission
from core.access.templates import CompiledTemplate, PathTemplate
from core.utils.logging_utils import get_component_logger


logger = get_component_logger("RouteMatcher", component="authorization")

# Flask style `<int:district_id>` / `<name>` rule parameters.
_RULE_PARAM = re.compile(r"<(?:[^:<>]+:)?([^<>]+)>")


# ============================================================
# CANDIDATE PATHS
# ============================================================

def rule_to_template(rule: str) -> str:
    """
    Convert a framework route rule into the catalog's placeholder syntax.
    """

    return _RULE_PARAM.sub(lambda m: ":" + m.group(1), rule)


def candidate_paths(path: str, route_pattern: Optional[str] = None) -> List[str]:
    """
    Ordered, de-duplicated path variants tried by both matching phases:
    original path, without and with trailing slash, then the route pattern
    variants when the router exposed one.
    """

    variants = []

    def _add(value: Optional[str]):
        if value and value not in variants:
            variants.append(value)

    original = (path or "").split("?")[0]
    stripped = original.rstrip("/") or "/"

    _add(original)
    _add(stripped)
    if stripped != "/":
        _add(stripped + "/")

    if route_pattern:
        pattern = rule_to_template(route_pattern.split("?")[0])
        pattern_stripped = pattern.rstrip("/") or "/"
        _add(pattern_stripped)
        if pattern_stripped != "/":
            _add(pattern_stripped + "/")

    return variants


# ============================================================
# MATCH RESULT
# ============================================================

@dataclass(frozen=True)
class RouteMatch:
    permission: Permission
    matched_path: str
    phase: str
    path_params: Dict[str, str]


@dataclass(frozen=True)
class _CompiledEntry:
    permission: Permission
    compiled: CompiledTemplate


# ============================================================
# ROUTE MATCHER
# ============================================================

class RouteMatcher:

    def __init__(
        self,
        store,
        refresh_seconds: float = 60.0,
        match_http_method: bool = False,
        clock: Callable[[], float] = time.monotonic
    ):

        self.store = store
        self.refresh_seconds = refresh_seconds
        self.match_http_method = match_http_method
        self._clock = clock

        self._lock = threading.Lock()
        self._arena: Dict[int, _CompiledEntry] = {}
        self._loaded_at: Optional[float] = None
        self._loaded_version: Optional[int] = None

    # ------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------

    def resolve(
        self,
        path: str,
        method: str,
        candidates: Optional[Sequence[str]] = None
    ) -> Optional[RouteMatch]:
        """
        Return the first matching permission, or None.
        """

        paths = list(candidates) if candidates else candidate_paths(path)

        found = self._resolve_exact(paths, method)
        if found:
            return found

        return self._resolve_pattern(paths, method)

    def invalidate(self) -> None:
        """Drop every compiled template; the next pattern lookup reloads."""

        with self._lock:
            self._arena = {}
            self._loaded_at = None
            self._loaded_version = None

        logger.info("Compiled route templates invalidated")

    @property
    def compiled_count(self) -> int:
        return len(self._arena)

    # ------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------

    def _method_allows(self, permission: Permission, method: str) -> bool:
        if not self.match_http_method or not permission.http_method:
            return True
        return permission.http_method.upper() == (method or "").upper()

    def _resolve_exact(self, paths: Iterable[str], method: str) -> Optional[RouteMatch]:

        for path in paths:
            for permission in self.store.find_active_permissions_by_url(path):
                if not self._method_allows(permission, method):
                    continue
                logger.debug(
                    "Exact match found: %s -> %s", path, permission.name
                )
                return RouteMatch(
                    permission=permission,
                    matched_path=path,
                    phase="exact",
                    path_params={},
                )

        return None

    def _resolve_pattern(self, paths: Sequence[str], method: str) -> Optional[RouteMatch]:

        for entry in self._entries():
            if not self._method_allows(entry.permission, method):
                continue
            for path in paths:
                params = entry.compiled.match(path)
                if params is not None:
                    logger.debug(
                        "Pattern match found: %s matches %s -> %s",
                        path,
                        entry.compiled.template.raw,
                        entry.permission.name
                    )
                    return RouteMatch(
                        permission=entry.permission,
                        matched_path=path,
                        phase="pattern",
                        path_params=params,
                    )

        return None

    # ------------------------------------------------------------
    # Compiled template arena
    # ------------------------------------------------------------

    def _is_stale(self, version: int) -> bool:
        if self._loaded_at is None:
            return True
        if version != self._loaded_version:
            return True
        return (self._clock() - self._loaded_at) >= self.refresh_seconds

    def _entries(self) -> List[_CompiledEntry]:

        version = self.store.catalog_version()

        with self._lock:
            if self._is_stale(version):
                self._arena = self._compile_catalog()
                self._loaded_at = self._clock()
                self._loaded_version = version
            arena = self._arena

        return list(arena.values())

    def _compile_catalog(self) -> Dict[int, _CompiledEntry]:

        arena = {}
        for permission in self.store.list_active_permissions():
            if not permission.url_template:
                continue
            template = PathTemplate.parse(permission.url_template)
            arena[permission.id] = _CompiledEntry(
                permission=permission,
                compiled=template.compile(),
            )

        self._warn_overlaps(arena)
        logger.info("Compiled %d route templates", len(arena))
        return arena

    def _warn_overlaps(self, arena: Dict[int, _CompiledEntry]) -> None:

        entries: List[Tuple[int, PathTemplate]] = [
            (pid, entry.compiled.template)
            for pid, entry in arena.items()
            if entry.compiled.template.is_dynamic
        ]

        for index, (first_id, first) in enumerate(entries):
            for second_id, second in entries[index + 1:]:
                if first.overlaps(second):
                    logger.warning(
                        "Overlapping permission templates %s (id=%d) and %s (id=%d); "
                        "id %d wins",
                        first.raw,
                        first_id,
                        second.raw,
                        second_id,
                        first_id
                    )
