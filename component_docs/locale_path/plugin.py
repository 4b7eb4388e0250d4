"""
An MkDocs plugin exposing the site's two-locale URL convention to templates.

The default locale has plain paths (``/components/button``); the other locale
appends a suffix (``/components/button-cn``) and uses ``/index-cn`` as its home.
"""

import re
from functools import partial
from typing import Any, Dict, Optional

from jinja2 import Environment
from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import Files
from mkdocs.structure.nav import Navigation
from mkdocs.structure.pages import Page


def is_localized(path: str, suffix: str = "cn") -> bool:
    """True if `path` ends with ``-<suffix>``, optionally followed by ``/``."""
    return re.search(rf"-{re.escape(suffix)}/?$", path) is not None


def resolve_locale_path(
    path: str,
    localized: bool,
    suffix: str = "cn",
    index: str = "index",
    search: str = "",
    hash: str = "",
) -> str:
    """Return the canonical path of `path` in the requested locale.

    Resolving an already canonical path returns it unchanged. `search` and
    `hash` are appended verbatim.
    """
    pathname = path if path.startswith("/") else f"/{path}"
    trailing_suffix = re.compile(rf"-{re.escape(suffix)}(/?)$")

    if not localized:
        while is_localized(pathname, suffix):
            pathname = trailing_suffix.sub(r"\1", pathname)
        if re.fullmatch(rf"/(?:{re.escape(index)}/?)?", pathname):
            pathname = "/"
    elif is_localized(pathname, suffix):
        pass
    elif pathname == "/":
        pathname = f"/{index}-{suffix}"
    elif pathname.endswith("/"):
        pathname = f"{pathname[:-1]}-{suffix}/"
    else:
        pathname = f"{pathname}-{suffix}"

    return f"{pathname}{search}{hash}"


class LocalePathPlugin(BasePlugin):
    config_scheme = (
        ("suffix",      c.Type(str, default="cn")),
        ("index_token", c.Type(str, default="index")),
    )

    def _options(self) -> Dict[str, str]:
        return {
            "suffix": self.config.get("suffix", "cn"),
            "index": self.config.get("index_token", "index"),
        }

    def on_env(self, env: Environment, *, config: MkDocsConfig, files: Files) -> Optional[Environment]:
        """Register ``localized_path`` and ``is_localized`` template filters."""
        options = self._options()
        env.filters["localized_path"] = partial(resolve_locale_path, **options)
        env.filters["is_localized"] = partial(is_localized, suffix=options["suffix"])
        return env

    def on_page_context(
        self, context: Dict[str, Any], *, page: Page, config: MkDocsConfig, nav: Navigation
    ) -> Optional[Dict[str, Any]]:
        options = self._options()
        url = "/" + (page.url or "")
        # With use_directory_urls disabled, urls end in ".html".
        url, ext = (url[:-5], ".html") if url.endswith(".html") else (url, "")
        localized = is_localized(url, options["suffix"])
        alternate = resolve_locale_path(url, not localized, **options)
        if ext:
            alternate += f"{options['index']}{ext}" if alternate.endswith("/") else ext
        context["page_is_localized"] = localized
        context["locale_alternate_url"] = alternate
        return context
