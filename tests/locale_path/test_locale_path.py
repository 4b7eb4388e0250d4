"""
Tests for the locale_path plugin.
"""

from types import SimpleNamespace

import pytest
from jinja2 import Environment

from component_docs.locale_path.plugin import LocalePathPlugin, is_localized, resolve_locale_path

PATHS = [
    "",
    "/",
    "/index",
    "/index/",
    "/index-cn",
    "/index-cn/",
    "components/button",
    "/components/button",
    "/components/button/",
    "/components/button-cn",
    "/components/button-cn/",
    "/components/button-cn-cn",
    "/docs/react/introduce-cn",
    "/-cn",
    "/a-cn/-cn",
    "/changelog",
]


class TestResolveLocalePath:
    """Canonical locale paths."""

    def test_examples(self):
        """Test: Documented conversions."""
        assert resolve_locale_path("/components/button", True) == "/components/button-cn"
        assert resolve_locale_path("/components/button-cn", False) == "/components/button"
        assert resolve_locale_path("/", True) == "/index-cn"
        assert resolve_locale_path("/index-cn", False) == "/"

    def test_trailing_separator(self):
        """Test: The suffix is inserted before a trailing slash."""
        assert resolve_locale_path("/components/button/", True) == "/components/button-cn/"
        assert resolve_locale_path("/components/button-cn/", False) == "/components/button/"

    def test_leading_separator_added(self):
        """Test: Relative input is normalized to start with a slash."""
        assert resolve_locale_path("components/button", False) == "/components/button"

    def test_search_and_hash(self):
        """Test: Query and fragment are appended verbatim."""
        assert resolve_locale_path("/changelog", True, search="?theme=dark", hash="#v1") == "/changelog-cn?theme=dark#v1"

    def test_custom_suffix(self):
        """Test: Suffix and index token are configurable."""
        assert resolve_locale_path("/", True, suffix="ja", index="home") == "/home-ja"
        assert resolve_locale_path("/guide-ja", False, suffix="ja") == "/guide"
        assert is_localized("/guide-ja/", suffix="ja")

    @pytest.mark.parametrize("path", PATHS)
    @pytest.mark.parametrize("localized", [True, False])
    def test_idempotent(self, path, localized):
        """Test: Resolving twice equals resolving once."""
        once = resolve_locale_path(path, localized)
        assert resolve_locale_path(once, localized) == once

    @pytest.mark.parametrize("path", PATHS)
    def test_detection_matches_resolution(self, path):
        """Test: Resolved paths are detected as the requested locale."""
        assert is_localized(resolve_locale_path(path, True))
        assert not is_localized(resolve_locale_path(path, False))


class TestLocalePathPlugin:
    """Template integration."""

    def test_on_env_filters(self):
        """Test: Filters are registered with the configured suffix."""
        plugin = LocalePathPlugin()
        plugin.load_config({"suffix": "cn"})
        env = plugin.on_env(Environment(), config={}, files=None)

        tpl = env.from_string("{{ '/components/button' | localized_path(true) }} {{ '/a-cn/' | is_localized }}")
        assert tpl.render() == "/components/button-cn True"

    def test_on_page_context(self):
        """Test: The alternate URL points to the other locale."""
        plugin = LocalePathPlugin()
        plugin.load_config({})

        context = plugin.on_page_context({}, page=SimpleNamespace(url="components/button-cn/"), config={}, nav=None)
        assert context["page_is_localized"] is True
        assert context["locale_alternate_url"] == "/components/button/"

        context = plugin.on_page_context({}, page=SimpleNamespace(url=""), config={}, nav=None)
        assert context["page_is_localized"] is False
        assert context["locale_alternate_url"] == "/index-cn"

    def test_on_page_context_html_urls(self):
        """Test: Page urls ending in .html keep their extension."""
        plugin = LocalePathPlugin()
        plugin.load_config({})

        context = plugin.on_page_context({}, page=SimpleNamespace(url="components/button-cn.html"), config={}, nav=None)
        assert context["page_is_localized"] is True
        assert context["locale_alternate_url"] == "/components/button.html"

        context = plugin.on_page_context({}, page=SimpleNamespace(url="components/button.html"), config={}, nav=None)
        assert context["page_is_localized"] is False
        assert context["locale_alternate_url"] == "/components/button-cn.html"

        context = plugin.on_page_context({}, page=SimpleNamespace(url="index-cn.html"), config={}, nav=None)
        assert context["locale_alternate_url"] == "/index.html"

        context = plugin.on_page_context({}, page=SimpleNamespace(url="index.html"), config={}, nav=None)
        assert context["locale_alternate_url"] == "/index-cn.html"
