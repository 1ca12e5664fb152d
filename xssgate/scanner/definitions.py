"""XSS blocklist definitions.

The blocklist is a curated set of lowercase substrings that indicate XSS
intent. Matching is plain substring containment against lowercased input,
so every entry here MUST be lowercase; ``build_blocklist()`` normalises
and de-duplicates anything supplied through config.

The list is built once at import (or once at startup when config extends
it) and never mutated afterwards.
"""

from __future__ import annotations

from typing import Iterable

#: Marker that introduces an embedded base64 HTML document.
DATA_URI_MARKER: str = "data:text/html;base64,"

_TAGS = (
    "<script", "</script", "<iframe", "</iframe", "<object", "</object",
    "<embed", "</embed", "<applet", "</applet", "<svg", "</svg",
    "<math", "</math", "<link", "<meta", "<style", "</style",
    "<img", "<image", "<video", "<audio", "<body", "</body",
    "<base", "<form", "<isindex", "<marquee", "<textarea",
    "<xmp", "<plaintext", "<noscript", "<title",
)

_EVENT_HANDLERS = (
    "onerror=", "onload=", "onclick=", "onmouseover=", "onfocus=",
    "onblur=", "onresize=", "onunload=", "onbeforeunload=", "onmousemove=",
    "onmouseout=", "onmousedown=", "onmouseup=", "onkeypress=", "onkeydown=",
    "onkeyup=", "oncontextmenu=", "onsubmit=", "onreset=", "onchange=",
    "ondblclick=", "onmouseenter=", "onmouseleave=", "onpaste=", "oncut=",
    "oncopy=", "oninput=", "ontouchstart=", "ontouchmove=", "ontouchend=",
)

_SCRIPT_CALLS = (
    "javascript:", "alert(", "eval(", "settimeout(", "setinterval(",
    "document.write(", "document.body.innerhtml", "window.location",
    "window.open(", "innerhtml=", "outerhtml=", "location.href=",
    "location.replace(", "exec(", "function(", "prompt(", "confirm(",
)

_DATA_URIS = (
    DATA_URI_MARKER, "data:application/javascript;base64,",
)

_CSS = (
    "style=", "expression(", "url(javascript:", "@import",
)

_ENCODED = (
    "%3cscript", "%3ciframe", "%3cimg", "&#x3cscript", "&#x3ciframe",
    "&#x3cimg", "\\x3cscript", "\\x3ciframe", "\\x3cimg",
    "\\u003cscript", "\\u003ciframe", "\\u003cimg",
)

_ATTRIBUTES_AND_SCHEMES = (
    "srcdoc=", "src=", "href=", "action=", "formaction=",
    "data=", "xmlns=", "xlink:href=", "base64,", "vbs:", "vbscript:",
    "document.cookie", "window.name", "parent.location", "top.location",
)

_MARKUP_BREAKOUTS = (
    "<!--", "-->", "<!", "!>", "</", "/>",
    "\">", "'>", "`>", "\"`>",
    "`> alert(", "`> prompt(", "`> confirm(",
)

_COMMENTS_AND_CDATA = (
    "<!--#", "--!>", "<!-->", "--->", "<![cdata[", "]]>",
    "<!--[if", "[if gte", "<!--[endif",
)


def build_blocklist(*groups: Iterable[str]) -> tuple[str, ...]:
    """Merge entry groups into a lowercase, de-duplicated, order-preserving tuple.

    Empty and whitespace-only entries are discarded: an empty substring
    would match every input.
    """
    seen: dict[str, None] = {}
    for group in groups:
        for entry in group:
            normalised = entry.strip().lower()
            if normalised:
                seen.setdefault(normalised, None)
    return tuple(seen)


#: Default process-wide blocklist.
XSS_BLOCKLIST: tuple[str, ...] = build_blocklist(
    _TAGS,
    _EVENT_HANDLERS,
    _SCRIPT_CALLS,
    _DATA_URIS,
    _CSS,
    _ENCODED,
    _ATTRIBUTES_AND_SCHEMES,
    _MARKUP_BREAKOUTS,
    _COMMENTS_AND_CDATA,
)
