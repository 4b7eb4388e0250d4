"""
An MkDocs plugin that adds documents living outside ``docs_dir`` (changelogs at
the repository root, for instance) to the site under fixed routes
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File, Files

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

DEFAULT_PARENT_ID = "DocLayout"


@dataclass(frozen=True)
class RouteEntry:
    id: str
    path: str
    abs_path: str
    parent_id: str
    file: str

    @classmethod
    def from_config(cls, entry: dict, base_dir: Path) -> "RouteEntry":
        """Build an entry from a ``routes`` item; `file` is resolved against `base_dir`."""
        if not isinstance(entry, dict) or not entry.get("path") or not entry.get("file"):
            raise PluginError(f"[extra_routes] route entries need 'path' and 'file': {entry!r}")
        path = str(entry["path"]).strip("/")
        return cls(
            id=str(entry.get("id") or path),
            path=path,
            abs_path=str(entry.get("abs_path") or f"/{path}"),
            parent_id=str(entry.get("parent_id") or DEFAULT_PARENT_ID),
            file=str((base_dir / str(entry["file"])).resolve()),
        )


def augment_routes(route_table: Dict[str, RouteEntry], extra_routes: Iterable[RouteEntry]) -> Dict[str, RouteEntry]:
    """Return a copy of `route_table` with `extra_routes` inserted by path.

    An existing route with the same path is replaced. Backing files are not
    checked here.
    """
    routes = dict(route_table)
    for entry in extra_routes:
        if entry.path in routes:
            logger.warning("[extra_routes] route '%s' overrides %s", entry.path, routes[entry.path].file)
        routes[entry.path] = entry
        logger.debug("[extra_routes] added route %s -> %s", entry.path, entry.file)
    return routes


def route_table_from_files(files: Files) -> Dict[str, RouteEntry]:
    routes: Dict[str, RouteEntry] = {}
    for f in files.documentation_pages():
        path = f.src_uri.rsplit(".", 1)[0]
        routes[path] = RouteEntry(
            id=path,
            path=path,
            abs_path=f"/{path}",
            parent_id="",
            file=f.abs_src_path or "",
        )
    return routes


class ExtraRoutesPlugin(BasePlugin):
    config_scheme = (("routes", c.Type(list, default=[])),)

    def __init__(self):
        super().__init__()
        self.extra_routes: List[RouteEntry] = []
        self.routes: Dict[str, RouteEntry] = {}

    def on_config(self, config: MkDocsConfig) -> Optional[MkDocsConfig]:
        config_file = config.get("config_file_path") or "mkdocs.yml"
        base_dir = Path(config_file).resolve().parent
        self.extra_routes = [RouteEntry.from_config(entry, base_dir) for entry in self.config.get("routes") or []]
        return config

    def on_files(self, files: Files, *, config: MkDocsConfig) -> Optional[Files]:
        self.routes = augment_routes(route_table_from_files(files), self.extra_routes)

        for entry in self.extra_routes:
            if self.routes.get(entry.path) is not entry:
                continue
            src_uri = f"{entry.path}.md"
            existing = files.get_file_from_path(src_uri)
            if existing is not None:
                files.remove(existing)
            files.append(File.generated(config, src_uri, abs_src_path=entry.file))

        return files
