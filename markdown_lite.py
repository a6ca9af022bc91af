"""
Markdown-lite rendering for slide bodies.

Slide text produced by the language model uses a small subset of
markdown: ``#``/``##``/``###`` headings, ``-``/``*``/``1.`` list items,
blank lines between paragraphs, and inline ``**bold**`` / ``*italic*``.
``parse_blocks`` turns a body into a list of blocks, ``render_html``
turns those blocks into escaped HTML.

Inline spans are found by ``scan_inline``, a single left-to-right pass.
At every ``*`` the scanner first tries to open a bold span, and only
when that fails an italic one, so ``**x**`` is never read as italic.
Markers without a closing partner stay literal text.
"""

import re
from dataclasses import dataclass, field
from typing import List, Tuple

from markupsafe import Markup, escape

_NUMBERED_ITEM = re.compile(r"^\d+\.\s+(.+)$")
_HEADINGS = (("### ", 3), ("## ", 2), ("# ", 1))


@dataclass(frozen=True)
class Span:
    kind: str  # text/bold/italic
    text: str

    def to_dict(self):
        return {"type": self.kind, "text": self.text}


@dataclass
class Block:
    kind: str  # heading/list/paragraph/break
    level: int = 0
    spans: Tuple[Span, ...] = ()
    items: List[Tuple[Span, ...]] = field(default_factory=list)
    ordered: bool = False

    def to_dict(self):
        if self.kind == "heading":
            return {"type": "heading", "level": self.level, "spans": [s.to_dict() for s in self.spans]}
        if self.kind == "list":
            return {
                "type": "list",
                "ordered": self.ordered,
                "items": [[s.to_dict() for s in item] for item in self.items],
            }
        if self.kind == "paragraph":
            return {"type": "paragraph", "spans": [s.to_dict() for s in self.spans]}
        return {"type": "break"}


def scan_inline(text: str) -> Tuple[Span, ...]:
    spans = []
    buf = []
    i = 0
    n = len(text)

    def flush():
        if buf:
            spans.append(Span("text", "".join(buf)))
            buf.clear()

    while i < n:
        if text.startswith("**", i):
            close = text.find("**", i + 2)
            if close > i + 2:
                flush()
                spans.append(Span("bold", text[i + 2:close]))
                i = close + 2
            else:
                buf.append("**")
                i += 2
            continue

        if text[i] == "*":
            close = text.find("*", i + 1)
            # the closing star must not start a bold marker
            if close > i + 1 and not text.startswith("**", close):
                flush()
                spans.append(Span("italic", text[i + 1:close]))
                i = close + 1
            else:
                buf.append("*")
                i += 1
            continue

        buf.append(text[i])
        i += 1

    flush()
    return tuple(spans)


def _list_item(line: str):
    if line.startswith("- ") or line.startswith("* "):
        return line[2:], False
    m = _NUMBERED_ITEM.match(line)
    if m:
        return m.group(1), True
    return None, False


def parse_blocks(content: str) -> List[Block]:
    blocks: List[Block] = []
    run: List[Tuple[Span, ...]] = []
    run_ordered = True

    def close_run():
        nonlocal run, run_ordered
        if run:
            blocks.append(Block("list", items=run, ordered=run_ordered))
        run = []
        run_ordered = True

    for raw in (content or "").split("\n"):
        line = raw.strip()

        heading = next(((line[len(p):], lvl) for p, lvl in _HEADINGS if line.startswith(p)), None)
        if heading:
            close_run()
            blocks.append(Block("heading", level=heading[1], spans=scan_inline(heading[0])))
            continue

        item, numbered = _list_item(line)
        if item is not None:
            run.append(scan_inline(item))
            run_ordered = run_ordered and numbered
            continue

        close_run()
        if line == "":
            blocks.append(Block("break"))
        else:
            blocks.append(Block("paragraph", spans=scan_inline(line)))

    close_run()
    return blocks


def _spans_html(spans) -> str:
    out = []
    for s in spans:
        if s.kind == "bold":
            out.append(f"<strong>{escape(s.text)}</strong>")
        elif s.kind == "italic":
            out.append(f"<em>{escape(s.text)}</em>")
        else:
            out.append(str(escape(s.text)))
    return "".join(out)


def render_html(content: str) -> Markup:
    parts = []
    for block in parse_blocks(content):
        if block.kind == "heading":
            parts.append(f"<h{block.level}>{_spans_html(block.spans)}</h{block.level}>")
        elif block.kind == "list":
            tag = "ol" if block.ordered else "ul"
            items = "".join(f"<li>{_spans_html(item)}</li>" for item in block.items)
            parts.append(f"<{tag}>{items}</{tag}>")
        elif block.kind == "paragraph":
            parts.append(f"<p>{_spans_html(block.spans)}</p>")
        else:
            parts.append('<div class="spacer"></div>')
    return Markup("\n".join(parts))
