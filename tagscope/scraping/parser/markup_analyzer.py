import structlog

from tagscope.data.tag_signatures import ALL_HINTS
from tagscope.models.detection import AnalyzedDocument
from tagscope.scraping.parser.script_parser import ScriptParser
from tagscope.scraping.parser.tag_parser import TagParser

log = structlog.get_logger()


def _has_hint(html: str) -> bool:
    lowered = html.lower()
    return any(hint in lowered for hint in ALL_HINTS)


def analyze_markup(html: str, base_url: str | None = None) -> AnalyzedDocument:
    """Extract scripts from a document and apply the signature catalog.

    Never raises. When the structural parse yields no matches but the raw text
    still mentions a known platform, a regex sweep over the raw text is tried;
    if that recovers matches the document is flagged ``parse_degraded``.
    """
    html = html or ""
    parser = ScriptParser(html, base_url)
    tags = TagParser()

    try:
        external, inline, noscripts = parser.parse()
    except Exception as e:
        log.warning("markup_parse_failed", url=base_url, error=str(e))
        external, inline, noscripts = parser.sweep()
        return AnalyzedDocument(
            external_scripts=external,
            inline_scripts=inline,
            noscript_blocks=noscripts,
            matches=tags.match(external, inline, noscripts),
            parse_degraded=True,
        )

    matches = tags.match(external, inline, noscripts)
    if matches or not _has_hint(html):
        return AnalyzedDocument(
            external_scripts=external,
            inline_scripts=inline,
            noscript_blocks=noscripts,
            matches=matches,
        )

    raw_external, raw_inline, raw_noscripts = parser.sweep()
    recovered = tags.match(raw_external, raw_inline, raw_noscripts)
    if not recovered:
        return AnalyzedDocument(
            external_scripts=external,
            inline_scripts=inline,
            noscript_blocks=noscripts,
            matches=[],
        )

    log.info("markup_sweep_recovered", url=base_url, matches=len(recovered))
    return AnalyzedDocument(
        external_scripts=raw_external,
        inline_scripts=raw_inline,
        noscript_blocks=raw_noscripts,
        matches=recovered,
        parse_degraded=True,
    )
