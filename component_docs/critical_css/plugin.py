"""
An MkDocs plugin that publishes each page's critical CSS as content-addressed
files and links them from the exported HTML
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlsplit

import csscompressor
from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from packaging import version

from component_docs.critical_css.critical_css import (
    ExportedPage,
    StyleCache,
    load_rule_cache,
    process_exported_pages,
)

# Use MkDocs' recommended plugin logger namespace so debug logs appear only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Compatibility: csscompressor<=0.9.5 strips whitespace inside url(), which breaks SVG data URIs.
if version.parse(csscompressor.__version__) <= version.parse("0.9.5"):
    # See https://github.com/sprymix/csscompressor/issues/9#issuecomment-1024417374
    _preserve_call_tokens_original = csscompressor._preserve_call_tokens
    _url_re = csscompressor._url_re

    def _preserve_call_tokens_keep_url_ws(*args, **kwargs):
        if _url_re == args[1]:
            kwargs["remove_ws"] = False
        return _preserve_call_tokens_original(*args, **kwargs)

    csscompressor._preserve_call_tokens = _preserve_call_tokens_keep_url_ws


class CriticalCSSPlugin(BasePlugin):
    """Extract the critical CSS of every exported page after the build.

    Configuration options (all optional):
    - caches (list): Style caches as ``{key, rules, priority}``. ``rules`` is a JSON/YAML
      file (relative to mkdocs.yml) mapping rule ids to CSS. Priority caches hold
      variables/tokens and are linked first in ``<head>``.
    - public_path (str): Prefix of the injected stylesheet hrefs. Defaults to the path
      of ``site_url``, or ``/`` when no site URL is configured.
    - minify_css (bool): Compress published CSS with csscompressor.
    - inline (bool): Inline ``<style>`` tags instead of publishing files.
    - param_marker (str): Pages whose path contains this marker are dynamic and get removed.
    - debug (bool): Verbose logging of every page scanned.
    """

    config_scheme = (
        ('caches',       c.Type(list, default=[])),
        ('public_path',  c.Type(str, default="")),
        ('minify_css',   c.Type(bool, default=False)),
        ('inline',       c.Type(bool, default=False)),
        ('param_marker', c.Type(str, default=":")),
        ('debug',        c.Type(bool, default=False)),
    )

    def __init__(self):
        super().__init__()
        self._caches: List[StyleCache] = []

    def _dbg(self, msg: str, *args) -> None:
        if not self.config.get("debug", False):
            return
        logger.debug("[critical_css] " + msg, *args)

    def register_cache(self, cache: StyleCache) -> None:
        """Add a style cache handle; extraction follows registration order."""
        self._caches.append(cache)

    @property
    def caches(self) -> List[StyleCache]:
        return list(self._caches)

    def _load_configured_caches(self, config_dir: Path) -> None:
        for entry in self.config.get("caches") or []:
            if not isinstance(entry, dict) or not entry.get("key") or not entry.get("rules"):
                raise PluginError(f"[critical_css] cache entries need 'key' and 'rules': {entry!r}")
            rules_path = (config_dir / str(entry["rules"])).resolve()
            try:
                cache = load_rule_cache(str(entry["key"]), rules_path, bool(entry.get("priority", False)))
            except (OSError, ValueError) as e:
                raise PluginError(f"[critical_css] unable to load cache rules {rules_path}: {e}") from e
            self._dbg("loaded %r from %s", cache, rules_path)
            self.register_cache(cache)

    @staticmethod
    def _collect_pages(site_dir: Path) -> Dict[Path, ExportedPage]:
        pages: Dict[Path, ExportedPage] = {}
        for html_file in sorted(site_dir.rglob("*.html")):
            rel_html = html_file.relative_to(site_dir).as_posix()
            pages[html_file] = ExportedPage(f"/{rel_html}", html_file.read_text(encoding="utf8"))
        return pages

    def _public_path(self, config: MkDocsConfig) -> str:
        public_path = self.config.get("public_path")
        if public_path:
            return public_path
        site_path = urlsplit(config.get("site_url") or "").path
        if not site_path:
            return "/"
        return site_path if site_path.endswith("/") else site_path + "/"

    @staticmethod
    def _remove_empty_parents(directory: Path, site_dir: Path) -> None:
        # Parametric routes must not leave their directories behind.
        while directory != site_dir and site_dir in directory.parents and not any(directory.iterdir()):
            directory.rmdir()
            directory = directory.parent

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_config(self, config: MkDocsConfig) -> Optional[MkDocsConfig]:
        self._caches = []
        config_file = config.get("config_file_path") or "mkdocs.yml"
        self._load_configured_caches(Path(config_file).resolve().parent)
        return config

    def on_post_build(self, *, config: MkDocsConfig) -> None:
        """Rewrite every built page; remove pages that cannot exist statically."""
        if not self._caches:
            self._dbg("no style caches registered, skipping")
            return

        site_dir = Path(config["site_dir"])
        pages = self._collect_pages(site_dir)
        originals = {page.path: page.content for page in pages.values()}

        processed = process_exported_pages(
            list(pages.values()),
            self._caches,
            site_dir,
            public_path=self._public_path(config),
            param_marker=self.config.get("param_marker", ":"),
            inline=self.config.get("inline", False),
            css_filter=csscompressor.compress if self.config.get("minify_css", False) else None,
        )
        kept = {page.path for page in processed}

        for html_file, page in pages.items():
            if page.path not in kept:
                html_file.unlink()
                self._remove_empty_parents(html_file.parent, site_dir)
                self._dbg("removed %s", page.path)
            elif page.content != originals[page.path]:
                html_file.write_text(page.content, encoding="utf8")

        styled = sum(1 for page in processed if page.fragments)
        logger.info("[critical_css] linked critical CSS into %d of %d pages", styled, len(processed))
