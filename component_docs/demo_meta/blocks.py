"""
Single-pass segmentation of a demo's companion markdown into named blocks.

A companion file looks like::

    ## en-US
    Basic usage.

    ## zh-CN
    基本用法。

    ```css
    .demo-box { color: red; }
    ```

Every level-2 heading opens a block named after the heading text (a locale
tag), and a CSS fence or ``<style>`` opener opens the reserved ``style`` block.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

STYLE_BLOCK = "style"

HEADING_PREFIX = "## "
STYLE_OPENERS = ("```css", "<style>")

# Opening markers swallow the newline that follows them so a fenced block
# yields bare CSS text.
STYLE_OPEN_RE = re.compile(r"(?:<style>|```[ \t]*css)[ \t]*\n?")
STYLE_CLOSE_RE = re.compile(r"</style>|```")


@dataclass
class Block:
    name: str
    lines: List[str] = field(default_factory=list)

    def text(self) -> str:
        """Return the block body with its markers removed."""
        if self.name == STYLE_BLOCK:
            return strip_style_markers("\n".join(self.lines))
        # Non-style blocks start with their heading line.
        return "\n".join(self.lines[1:])


def strip_style_markers(text: str) -> str:
    text = STYLE_OPEN_RE.sub("", text)
    return STYLE_CLOSE_RE.sub("", text)


def block_name(line: str) -> Optional[str]:
    """Return the name of the block `line` opens, or None."""
    if line.startswith(HEADING_PREFIX):
        return line[len(HEADING_PREFIX):].strip()
    if line.startswith(STYLE_OPENERS):
        return STYLE_BLOCK
    return None


def iter_blocks(markdown: str) -> Iterator[Block]:
    """Yield non-empty blocks in document order.

    Content before the first marker is yielded under the empty name; callers
    never look it up, since it is neither a locale nor ``style``.
    """
    current = Block("")
    for line in markdown.split("\n"):
        name = block_name(line)
        if name is None:
            current.lines.append(line)
            continue
        if current.lines:
            yield current
        current = Block(name, [line])
    if current.lines:
        yield current


def parse_blocks(markdown: str) -> Dict[str, str]:
    """Map block name to body text. A repeated name keeps the last block."""
    return {block.name: block.text() for block in iter_blocks(markdown)}
