"""
An MkDocs plugin that attaches preview metadata (localized description, custom
style, transformed source) to every demo a page references.
"""

import importlib
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import Files
from mkdocs.structure.pages import Page

from component_docs.demo_meta.blocks import STYLE_BLOCK, parse_blocks

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# <code src="./demo/basic.tsx">Basic</code>
DEMO_REF_RE = r"<{tag}\b[^>]*?\bsrc=([\"'])(?P<src>[^\"']+)\1[^>]*>(?P<title>.*?)</{tag}>"
DEMO_FENCE_RE = re.compile(
    r"^```(?:tsx|jsx)\b(?P<info>[^\n]*)\n(?P<code>.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)


@dataclass(frozen=True)
class InlineCodeBlock:
    """A demo written directly inside a fenced code block of the page."""

    entry_point_code: str


@dataclass(frozen=True)
class ExternalDemoFile:
    """A demo living in its own source file next to a companion markdown file.

    `md_abs_path` is the document that references the demo; its file name
    carries the locale (``index.zh-CN.md``).
    """

    file_abs_path: str
    md_abs_path: str


DemoSource = Union[InlineCodeBlock, ExternalDemoFile]
PreviewerHook = Callable[[Dict[str, Any], DemoSource], Dict[str, Any]]


def identity(code: str) -> str:
    return code


def locale_from_path(md_abs_path: str) -> str:
    """Return the second-to-last dot-separated segment of the file name."""
    parts = Path(md_abs_path).name.split(".")
    return parts[-2] if len(parts) > 1 else ""


def read_text_or_empty(path: Path) -> str:
    if not path.is_file():
        logger.debug("[demo_meta] %s not found, treating as empty", path)
        return ""
    return path.read_text(encoding="utf-8")


def generate_previewer_props(
    props: Dict[str, Any],
    source: DemoSource,
    *,
    transform: Callable[[str], str] = identity,
    source_suffix: str = ".tsx",
) -> Dict[str, Any]:
    """Augment `props` with the metadata of a single demo.

    Inline blocks only get their transformed source. External demos also read
    the companion markdown (same path, ``.md`` extension) and pick the block
    matching the document's locale as description, plus the ``style`` block.
    """
    props.setdefault("jsx", "")

    if isinstance(source, InlineCodeBlock):
        code = source.entry_point_code
        props["jsx"] = transform(code) if code else ""
        return props

    if isinstance(source, ExternalDemoFile):
        demo_path = Path(source.file_abs_path)
        md = read_text_or_empty(demo_path.with_suffix(".md"))
        code = read_text_or_empty(demo_path.with_suffix(source_suffix))
        props["jsx"] = transform(code)

        if md:
            blocks = parse_blocks(md)
            props["description"] = blocks.get(locale_from_path(source.md_abs_path))
            props["style"] = blocks.get(STYLE_BLOCK)
        return props

    raise TypeError(f"Unsupported demo source: {source!r}")


def load_transform(dotted: str) -> Callable[[str], str]:
    """Import a ``module:attr`` callable, or return identity for an empty path."""
    if not dotted:
        return identity
    module_name, _, attr = dotted.partition(":")
    try:
        module = importlib.import_module(module_name)
        func = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise PluginError(f"[demo_meta] cannot load source_transform '{dotted}': {e}") from e
    if not callable(func):
        raise PluginError(f"[demo_meta] source_transform '{dotted}' is not callable")
    return func


class DemoMetaPlugin(BasePlugin):
    """Collect preview props for the demos referenced by each page.

    Demos are found in two forms:
    - ``<code src="./demo/basic.tsx">Basic</code>`` references to external files
    - fenced ``tsx``/``jsx`` blocks whose info string contains ``demo``

    The resulting props are stored in ``page.meta["demos"]`` for the theme to
    render; the markdown itself is left untouched.
    """

    config_scheme = (
        ("source_suffix",    c.Type(str, default=".tsx")),
        ("source_transform", c.Type(str, default="")),
        ("package_json",     c.Type(str, default="")),
        ("demo_tag",         c.Type(str, default="code")),
    )

    def __init__(self):
        super().__init__()
        self._transform: Callable[[str], str] = identity
        self._dependencies: Dict[str, str] = {}
        self._peer_dependencies: Dict[str, str] = {}
        self._previewer_hooks: List[PreviewerHook] = [self._builtin_props]

    def register_previewer_hook(self, hook: PreviewerHook) -> None:
        """Run `hook` after the built-in metadata generation for every demo."""
        self._previewer_hooks.append(hook)

    def previewer_props(self, source: DemoSource) -> Dict[str, Any]:
        props: Dict[str, Any] = {"jsx": ""}
        for hook in self._previewer_hooks:
            props = hook(props, source)
        return props

    def _builtin_props(self, props: Dict[str, Any], source: DemoSource) -> Dict[str, Any]:
        props["pkg_dependency_list"] = dict(self._dependencies)
        props["pkg_peer_dependencies"] = dict(self._peer_dependencies)
        return generate_previewer_props(
            props,
            source,
            transform=self._transform,
            source_suffix=self.config.get("source_suffix", ".tsx"),
        )

    def _load_package_json(self, config_dir: Path) -> None:
        rel = self.config.get("package_json")
        if not rel:
            return
        path = (config_dir / rel).resolve()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PluginError(f"[demo_meta] unable to read {path}: {e}") from e
        # Runtime dependencies win over dev ones with the same name.
        self._dependencies = {**data.get("devDependencies", {}), **data.get("dependencies", {})}
        self._peer_dependencies = dict(data.get("peerDependencies", {}))
        logger.debug("[demo_meta] loaded %d dependencies from %s", len(self._dependencies), path)

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_config(self, config: MkDocsConfig) -> Optional[MkDocsConfig]:
        self._transform = load_transform(self.config.get("source_transform", ""))
        config_file = config.get("config_file_path") or "mkdocs.yml"
        self._load_package_json(Path(config_file).resolve().parent)
        return config

    def on_page_markdown(self, markdown: str, *, page: Page, config: MkDocsConfig, files: Files) -> Optional[str]:
        demos: List[Dict[str, Any]] = []

        md_abs_path = getattr(page.file, "abs_src_path", None) or ""
        page_dir = Path(md_abs_path).parent
        ref_re = re.compile(DEMO_REF_RE.format(tag=re.escape(self.config.get("demo_tag", "code"))), re.DOTALL)

        for m in ref_re.finditer(markdown):
            file_abs_path = (page_dir / m.group("src")).resolve()
            props = self.previewer_props(ExternalDemoFile(str(file_abs_path), md_abs_path))
            props["src"] = m.group("src")
            props["title"] = m.group("title").strip()
            demos.append(props)

        for m in DEMO_FENCE_RE.finditer(markdown):
            if "demo" not in m.group("info").split():
                continue
            demos.append(self.previewer_props(InlineCodeBlock(m.group("code"))))

        if demos:
            logger.debug("[demo_meta] %s: %d demos", page.file.src_uri, len(demos))
            page.meta["demos"] = demos
        return markdown
