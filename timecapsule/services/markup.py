"""
Lightweight Markdown-ish markup -> sanitised HTML for capsule emails.

Input is HTML-escaped first, markup is expanded with line-anchored regexes,
and the result is run through bleach so only the allow-listed tags survive.
"""
import html
import re

import bleach

ALLOWED_TAGS = [
    "p", "br", "h1", "h2", "h3", "strong", "em", "s", "code", "a", "hr",
    "blockquote", "ul", "li", "span", "table", "thead", "tbody", "tr", "th", "td",
]
ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "li": ["class"],
    "span": ["class"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

_TABLE_RE = re.compile(r"(?:^\|.+\|[ \t]*(?:\n|$))+", re.M)
_TODO_DONE_RE = re.compile(r"^- \[[xX]\] (.*)$", re.M)
_TODO_OPEN_RE = re.compile(r"^- \[ \] (.*)$", re.M)
_H3_RE = re.compile(r"^### (.*)$", re.M)
_H2_RE = re.compile(r"^## (.*)$", re.M)
_H1_RE = re.compile(r"^# (.*)$", re.M)
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"\*(.+?)\*")
_STRIKE_RE = re.compile(r"~~(.+?)~~")
_CODE_RE = re.compile(r"`(.+?)`")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_HR_RE = re.compile(r"^-{3,}$", re.M)
_QUOTE_RE = re.compile(r"^&gt; (.*)$", re.M)
_LI_RE = re.compile(r"^- (.*)$", re.M)
_LI_RUN_RE = re.compile(r"(?:<li[^>]*>.*?</li>(?:\n(?=<li))?)+", re.S)
_BLOCK_START_RE = re.compile(r"^<(table|h[1-6]|ul|blockquote|hr)")


def _row(line: str, tag: str) -> str:
    cells = [c.strip() for c in line.strip().split("|")[1:-1]]
    return "<tr>" + "".join(f"<{tag}>{c}</{tag}>" for c in cells) + "</tr>"


def _table(match: re.Match) -> str:
    lines = [ln for ln in match.group(0).strip().split("\n") if ln.strip()]
    if len(lines) < 2:
        return match.group(0)
    # second line is the |---|---| separator
    head = _row(lines[0], "th")
    body = "".join(_row(ln, "td") for ln in lines[2:])
    return f"\n<table><thead>{head}</thead><tbody>{body}</tbody></table>\n"


def render_markdown(text: str) -> str:
    if not text:
        return ""
    out = html.escape(text.replace("\r\n", "\n"))

    out = _TABLE_RE.sub(_table, out)

    # placeholders keep todo items away from the plain-list pass
    out = _TODO_DONE_RE.sub(lambda m: f"\x00TD\x00{m.group(1)}\x00END\x00", out)
    out = _TODO_OPEN_RE.sub(lambda m: f"\x00TP\x00{m.group(1)}\x00END\x00", out)

    out = _H3_RE.sub(r"<h3>\1</h3>", out)
    out = _H2_RE.sub(r"<h2>\1</h2>", out)
    out = _H1_RE.sub(r"<h1>\1</h1>", out)

    out = _BOLD_RE.sub(r"<strong>\1</strong>", out)
    out = _ITALIC_RE.sub(r"<em>\1</em>", out)
    out = _STRIKE_RE.sub(r"<s>\1</s>", out)
    out = _CODE_RE.sub(r"<code>\1</code>", out)
    out = _LINK_RE.sub(r'<a href="\2" target="_blank" rel="noopener noreferrer">\1</a>', out)

    out = _HR_RE.sub("<hr/>", out)
    out = _QUOTE_RE.sub(r"<blockquote>\1</blockquote>", out)
    out = _LI_RE.sub(r"<li>\1</li>", out)

    out = re.sub(
        r"\x00TD\x00(.+?)\x00END\x00",
        r'<li class="todo done"><span class="box">&#9745;</span><s>\1</s></li>',
        out,
    )
    out = re.sub(
        r"\x00TP\x00(.+?)\x00END\x00",
        r'<li class="todo"><span class="box">&#9744;</span>\1</li>',
        out,
    )
    out = _LI_RUN_RE.sub(lambda m: f"<ul>{m.group(0)}</ul>", out)

    blocks = []
    for block in out.split("\n\n"):
        if _BLOCK_START_RE.match(block.strip()):
            blocks.append(block)
        elif block.strip():
            blocks.append("<p>" + block.strip("\n").replace("\n", "<br/>") + "</p>")
    return sanitize("\n".join(blocks))


def sanitize(fragment: str) -> str:
    return bleach.clean(
        fragment,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )
