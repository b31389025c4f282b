import re

from tagscope.data.tag_signatures import TAG_SIGNATURES, TagSignature
from tagscope.models.detection import (
    InlineScript,
    LoadAttribute,
    RawMatch,
    ScriptRef,
    SourceLocation,
)

_EVIDENCE_LIMIT = 200


class TagParser:
    """Applies the signature catalog to extracted scripts and noscript blocks."""

    def __init__(self, signatures: tuple[TagSignature, ...] = TAG_SIGNATURES):
        self.signatures = signatures

    def match(
        self,
        external: list[ScriptRef],
        inline: list[InlineScript],
        noscripts: list[str],
    ) -> list[RawMatch]:
        matches: list[RawMatch] = []
        seen: set[tuple[str, str | None, SourceLocation]] = set()

        for sig in self.signatures:
            found: list[RawMatch] = []

            if sig.script_pattern is not None:
                for ref in external:
                    m = sig.script_pattern.search(ref.src)
                    if m and self._accepts(sig, m):
                        found.append(
                            RawMatch(
                                signature_name=sig.name,
                                captured_id=sig.extract_id(m),
                                source=SourceLocation.EXTERNAL_SCRIPT,
                                load_attribute=ref.load_attribute,
                                evidence=ref.src[:_EVIDENCE_LIMIT],
                            )
                        )

            for pattern in sig.inline_patterns:
                for script in inline:
                    for m in pattern.finditer(script.text):
                        if not self._accepts(sig, m):
                            continue
                        found.append(
                            RawMatch(
                                signature_name=sig.name,
                                captured_id=sig.extract_id(m),
                                source=SourceLocation.INLINE_SCRIPT,
                                load_attribute=LoadAttribute.NONE,
                                script_creation=script.creates_script,
                                evidence=m.group(0)[:_EVIDENCE_LIMIT],
                            )
                        )

            if sig.noscript_pattern is not None:
                for block in noscripts:
                    for m in sig.noscript_pattern.finditer(block):
                        if not self._accepts(sig, m):
                            continue
                        found.append(
                            RawMatch(
                                signature_name=sig.name,
                                captured_id=sig.extract_id(m),
                                source=SourceLocation.NOSCRIPT,
                                evidence=m.group(0)[:_EVIDENCE_LIMIT],
                            )
                        )

            if not found:
                continue

            version = self._version(sig, external, inline)
            for raw in found:
                key = (raw.signature_name, raw.captured_id, raw.source)
                if key in seen:
                    continue
                seen.add(key)
                matches.append(raw.model_copy(update={"version": version}) if version else raw)

        return matches

    @staticmethod
    def _accepts(sig: TagSignature, m: re.Match[str]) -> bool:
        """Patterns with capture groups only count when the id is well-formed."""
        if not m.groups():
            return True
        return sig.extract_id(m) is not None

    @staticmethod
    def _version(
        sig: TagSignature, external: list[ScriptRef], inline: list[InlineScript]
    ) -> str | None:
        if sig.version_pattern is None:
            return None
        for text in [ref.src for ref in external] + [s.text for s in inline]:
            m = sig.version_pattern.search(text)
            if m:
                return m.group(1)
        return None
