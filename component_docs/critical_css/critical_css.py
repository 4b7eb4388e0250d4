"""
Critical CSS extraction and publishing for statically exported pages.

Each style cache knows which of its rules a rendered page actually uses. Those
rules are written once to a content-addressed file in the output directory and
linked from the page's ``<head>``, so the first paint is already styled.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

import yaml
from bs4 import BeautifulSoup

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

HEAD_OPEN = "<head>"
HEAD_CLOSE = "</head>"


@dataclass(frozen=True)
class CriticalResult:
    css: str
    ids: Tuple[str, ...] = ()


class StyleCache(Protocol):
    """A style cache handle supplied by the rendering layer."""

    key: str
    priority: bool

    def extract_critical(self, html: str) -> CriticalResult:
        """Return the cache's rules referenced by `html`."""
        ...


class RuleCache:
    """Style cache backed by an ordered ``rule id -> css`` mapping.

    A rule is referenced by a page when some element carries the class
    ``<key>-<id>``. Referenced rules are reported in insertion order, so the
    ids of a given page are always listed the same way.
    """

    def __init__(self, key: str, rules: Dict[str, str], priority: bool = False):
        self.key = key
        self.rules = dict(rules)
        self.priority = priority

    def __repr__(self) -> str:
        return f"RuleCache(key={self.key!r}, rules={len(self.rules)}, priority={self.priority})"

    @staticmethod
    def _class_tokens(html: str) -> Set[str]:
        soup = BeautifulSoup(html, "html.parser")
        tokens: Set[str] = set()
        for tag in soup.find_all(class_=True):
            classes = tag.get("class") or []
            if isinstance(classes, str):
                classes = classes.split()
            tokens.update(classes)
        return tokens

    def extract_critical(self, html: str) -> CriticalResult:
        if not html or not self.rules:
            return CriticalResult("")
        tokens = self._class_tokens(html)
        ids = tuple(rule_id for rule_id in self.rules if f"{self.key}-{rule_id}" in tokens)
        return CriticalResult("".join(self.rules[rule_id] for rule_id in ids), ids)


def load_rule_cache(key: str, rules_path: Path, priority: bool = False) -> RuleCache:
    """Load a :class:`RuleCache` from a JSON or YAML mapping file."""
    text = rules_path.read_text(encoding="utf-8")
    if rules_path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{rules_path} must contain a mapping of rule id to CSS")
    return RuleCache(key, {str(k): str(v) for k, v in data.items()}, priority=priority)


@dataclass(frozen=True)
class StyleFragment:
    """Critical rules of one cache found on one page."""

    cache_key: str
    css: str
    rule_ids: Tuple[str, ...]
    priority: bool = False

    @property
    def tag(self) -> str:
        """Inline ``<style>`` form, identified by cache key and rule ids."""
        ident = " ".join((self.cache_key,) + self.rule_ids)
        return f'<style data-critical="{ident}">{self.css}</style>'


@dataclass
class ExportedPage:
    path: str
    content: str
    fragments: List[StyleFragment] = field(default_factory=list)


def extract_critical_styles(html: str, caches: Iterable[StyleCache]) -> List[StyleFragment]:
    """Return one fragment per cache with rules on the page, in cache order."""
    fragments: List[StyleFragment] = []
    for cache in caches:
        result = cache.extract_critical(html)
        if not result.css:
            continue
        fragments.append(
            StyleFragment(
                cache_key=cache.key,
                css=result.css,
                rule_ids=tuple(result.ids),
                priority=bool(getattr(cache, "priority", False)),
            )
        )
    return fragments


def short_hash(text: str, length: int = 8) -> str:
    return hashlib.md5(text.encode("utf8")).hexdigest()[:length]


def css_file_name(cache_key: str, rule_ids: Sequence[str]) -> str:
    """``style-<key>.<hash>.css``; the hash covers the ids in the given order.

    Ids are space separated so that different sequences never share a name.
    """
    return f"style-{cache_key}.{short_hash(' '.join(rule_ids))}.css"


def publish_css(cache_key: str, rule_ids: Sequence[str], css: str, output_dir: Path) -> str:
    """Write `css` under its derived name unless that file already exists.

    Existing files are trusted and never rewritten. Write errors propagate.
    """
    file_name = css_file_name(cache_key, rule_ids)
    file_path = Path(output_dir) / file_name
    if file_path.exists():
        logger.debug("[critical_css] reuse: %s", file_path)
        return file_name
    logger.info("[critical_css] write to: %s", file_path)
    file_path.write_text(css, encoding="utf8")
    return file_name


def add_to_head(html: str, markup: str, prepend: bool = False) -> str:
    """Insert `markup` right after ``<head>`` (prepend) or right before ``</head>``."""
    if prepend:
        return html.replace(HEAD_OPEN, HEAD_OPEN + markup, 1)
    return html.replace(HEAD_CLOSE, markup + HEAD_CLOSE, 1)


def add_link_style(html: str, href: str, prepend: bool = False) -> str:
    return add_to_head(html, f'<link rel="stylesheet" href="{href}">', prepend)


def is_parametric(path: str, marker: str = ":") -> bool:
    return marker in path


def process_exported_pages(
    pages: Iterable[ExportedPage],
    caches: Sequence[StyleCache],
    output_dir: Path,
    *,
    public_path: str = "/",
    param_marker: str = ":",
    inline: bool = False,
    css_filter: Optional[Callable[[str], str]] = None,
) -> List[ExportedPage]:
    """Publish each page's critical CSS and link it from the page.

    Parametric pages cannot be written as static files and are dropped from
    the result. The remaining pages keep their order and are mutated in place.
    """
    result: List[ExportedPage] = []
    for page in pages:
        if is_parametric(page.path, param_marker):
            logger.debug("[critical_css] drop parametric page %s", page.path)
            continue

        for fragment in extract_critical_styles(page.content, caches):
            logger.info(
                "[critical_css] %s include [%s] %d styles",
                page.path,
                fragment.cache_key,
                len(fragment.rule_ids),
            )
            css = css_filter(fragment.css) if css_filter else fragment.css
            if inline:
                page.content = add_to_head(page.content, replace(fragment, css=css).tag, fragment.priority)
            else:
                file_name = publish_css(fragment.cache_key, fragment.rule_ids, css, output_dir)
                page.content = add_link_style(page.content, public_path + file_name, fragment.priority)
            page.fragments.append(fragment)

        result.append(page)
    return result
