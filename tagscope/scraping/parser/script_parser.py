import re
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from tagscope.models.detection import InlineScript, ScriptRef

# Inline code that injects further scripts at runtime
_SCRIPT_CREATION = re.compile(
    r"createElement\(\s*(?:['\"]script['\"]|[A-Za-z_$][\w$]*)\s*\)"
    r"|\.appendChild\(|\.insertBefore\(|document\.write\(",
    re.IGNORECASE,
)

# Raw-text sweep, used when the structural parse misses everything
_RAW_SCRIPT = re.compile(r"<script\b([^>]*)>(.*?)</script\s*>", re.IGNORECASE | re.DOTALL)
_RAW_NOSCRIPT = re.compile(r"<noscript\b[^>]*>(.*?)</noscript\s*>", re.IGNORECASE | re.DOTALL)
_RAW_SRC = re.compile(r"\bsrc\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s>]+))", re.IGNORECASE)
_RAW_TYPE = re.compile(r"\btype\s*=\s*[\"']?([^\"'\s>]+)", re.IGNORECASE)
_RAW_FLAG = r"(?:^|\s){}(?:\s|=|$)"


def creates_script(text: str) -> bool:
    return bool(_SCRIPT_CREATION.search(text))


def resolve_src(src: str, base_url: str | None) -> str:
    """Resolve protocol-relative and relative script URLs."""
    src = src.strip()
    if src.startswith("//"):
        return f"https:{src}"
    if base_url and not src.startswith(("http://", "https://")):
        return urljoin(base_url, src)
    return src


class ScriptParser:
    """Extracts script references, inline bodies and noscript blocks from a document."""

    def __init__(self, html: str, base_url: str | None = None):
        self.html = html or ""
        self.base_url = base_url

    def parse(self) -> tuple[list[ScriptRef], list[InlineScript], list[str]]:
        tree = HTMLParser(self.html)
        external: list[ScriptRef] = []
        inline: list[InlineScript] = []

        for node in tree.css("script"):
            attrs = node.attributes
            src = attrs.get("src")
            if src:
                external.append(
                    ScriptRef(
                        src=resolve_src(src, self.base_url),
                        is_async="async" in attrs,
                        is_defer="defer" in attrs,
                        type=attrs.get("type"),
                    )
                )
                continue
            text = node.text(deep=True) or ""
            if text.strip():
                inline.append(InlineScript(text=text, creates_script=creates_script(text)))

        noscripts = [node.html or "" for node in tree.css("noscript")]
        return external, inline, [n for n in noscripts if n]

    def sweep(self) -> tuple[list[ScriptRef], list[InlineScript], list[str]]:
        """Regex pass over the raw text for markup the structural parser lost."""
        external: list[ScriptRef] = []
        inline: list[InlineScript] = []

        for m in _RAW_SCRIPT.finditer(self.html):
            attr_text, body = m.group(1), m.group(2)
            src_match = _RAW_SRC.search(attr_text)
            if src_match:
                src = next(g for g in src_match.groups() if g is not None)
                type_match = _RAW_TYPE.search(attr_text)
                external.append(
                    ScriptRef(
                        src=resolve_src(src, self.base_url),
                        is_async=bool(re.search(_RAW_FLAG.format("async"), attr_text, re.I)),
                        is_defer=bool(re.search(_RAW_FLAG.format("defer"), attr_text, re.I)),
                        type=type_match.group(1) if type_match else None,
                    )
                )
            elif body.strip():
                inline.append(InlineScript(text=body, creates_script=creates_script(body)))

        noscripts = [m.group(0) for m in _RAW_NOSCRIPT.finditer(self.html)]
        return external, inline, noscripts
