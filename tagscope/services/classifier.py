import re
from typing import TypeVar

from tagscope.config.settings import Settings, get_settings
from tagscope.data.tag_signatures import SIGNATURES_BY_NAME, TAG_SIGNATURES, TagSignature
from tagscope.models.detection import (
    Conflict,
    DetectionTarget,
    DirectTagFinding,
    EscalationInfo,
    ImplementationType,
    LoadAttribute,
    LoadingPattern,
    Methodology,
    MigrationStatus,
    PageFinding,
    RawMatch,
    SourceLocation,
    TagManagerFinding,
)
from tagscope.models.scraping import FetchTier

_UTAG_VERSION = re.compile(r"ut(\d+)\.(\d+)\.(\d+)")

_LOAD_PATTERNS = {
    LoadAttribute.ASYNC: LoadingPattern.ASYNC,
    LoadAttribute.DEFER: LoadingPattern.DEFERRED,
    LoadAttribute.NONE: LoadingPattern.SYNCHRONOUS,
}


def implementation_type(matches: list[RawMatch]) -> ImplementationType:
    has_external = any(m.source == SourceLocation.EXTERNAL_SCRIPT for m in matches)
    has_inline = any(m.source == SourceLocation.INLINE_SCRIPT for m in matches)
    inline_creates = any(
        m.source == SourceLocation.INLINE_SCRIPT and m.script_creation for m in matches
    )
    if has_external and inline_creates:
        return ImplementationType.HYBRID
    if has_external or not has_inline:
        return ImplementationType.STATIC
    return ImplementationType.DYNAMIC_LOADING


def loading_pattern(matches: list[RawMatch]) -> LoadingPattern:
    for m in matches:
        if m.source == SourceLocation.EXTERNAL_SCRIPT:
            return _LOAD_PATTERNS[m.load_attribute]
    if any(m.source == SourceLocation.INLINE_SCRIPT and m.script_creation for m in matches):
        return LoadingPattern.DYNAMIC
    return LoadingPattern.SYNCHRONOUS


T = TypeVar("T")


def _unique(items: list[T]) -> list[T]:
    return list(dict.fromkeys(items))


def matched_id(sig: TagSignature, ids: list[str], target: DetectionTarget | None) -> str | None:
    """First id whose fields equal every supplied target field this platform encodes."""
    if target is None:
        return None
    supplied = {k: v for k, v in target.supplied_fields().items() if k in sig.id_fields}
    if not supplied:
        return None
    for identifier in ids:
        parts = sig.split_id(identifier)
        if all(parts.get(k) == v for k, v in supplied.items()):
            return identifier
    return None


def match_target(sig: TagSignature, ids: list[str], target: DetectionTarget | None) -> bool | None:
    """Exact equality on every supplied target field this platform's ids encode.

    None when no supplied field applies to the platform.
    """
    if target is None or not ids:
        return None
    if not any(k in sig.id_fields for k in target.supplied_fields()):
        return None
    return matched_id(sig, ids, target) is not None


def utag_version_fields(version: str | None) -> dict[str, str]:
    """Split a utag ``utv`` value such as ``ut4.46.202301091855`` into its parts."""
    if not version:
        return {}
    m = _UTAG_VERSION.match(version)
    if m is None:
        return {}
    major, minor, build = m.groups()
    fields = {"major_version": major, "minor_version": minor, "build_version": build}
    # Build numbers are YYYYMMDDHHMM
    if len(build) >= 8:
        fields["profile_build_date"] = f"{build[:4]}-{build[4:6]}-{build[6:8]}"
    return fields


class Classifier:
    """Turns raw signature matches into a structured per-page finding."""

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.source_platform = settings.migration_source_platform
        self.target_platform = settings.migration_target_platform

    def classify(
        self,
        matches: list[RawMatch],
        target: DetectionTarget | None = None,
        *,
        url: str,
        fetch_tier: FetchTier = FetchTier.LIGHTWEIGHT,
        status_code: int | None = None,
        page_title: str | None = None,
        scripts: list[str] | None = None,
        parse_degraded: bool = False,
        escalation: EscalationInfo | None = None,
        depth: int | None = None,
    ) -> PageFinding:
        grouped: dict[str, list[RawMatch]] = {}
        for m in matches:
            if m.signature_name in SIGNATURES_BY_NAME:
                grouped.setdefault(m.signature_name, []).append(m)

        tag_managers: list[TagManagerFinding] = []
        direct_tags: list[DirectTagFinding] = []

        # Catalog order keeps output stable regardless of match order
        for sig in TAG_SIGNATURES:
            sig_matches = grouped.get(sig.name)
            if not sig_matches:
                continue
            ids = sorted({m.captured_id for m in sig_matches if m.captured_id})
            found_sources = {m.source for m in sig_matches}
            sources = [s for s in SourceLocation if s in found_sources]
            pattern = loading_pattern(sig_matches)

            if sig.is_tag_manager:
                primary = matched_id(sig, ids, target) or (ids[0] if ids else None)
                parts = sig.split_id(primary) if primary and sig.is_path_id else {}
                version = next((m.version for m in sig_matches if m.version), None)
                tag_managers.append(
                    TagManagerFinding(
                        platform=sig.platform,
                        signature=sig.name,
                        ids=ids,
                        account=parts.get("account"),
                        profile=parts.get("profile"),
                        environment=parts.get("environment"),
                        version=version,
                        **utag_version_fields(version),
                        implementation_type=implementation_type(sig_matches),
                        loading_pattern=pattern,
                        sources=sources,
                        matches_target=match_target(sig, ids, target),
                    )
                )
            else:
                direct_tags.append(
                    DirectTagFinding(
                        name=sig.name,
                        platform=sig.platform,
                        ids=ids,
                        loading_pattern=pattern,
                        sources=sources,
                        recommendation=sig.recommendation,
                    )
                )

        platforms = _unique([tm.platform for tm in tag_managers])
        methodology = self._methodology(platforms)
        conflicts = self._conflicts(methodology, platforms, tag_managers, direct_tags)
        migration = self._migration_status(platforms)
        recommendations = self._recommendations(methodology, migration, conflicts, direct_tags)

        return PageFinding(
            url=url,
            success=True,
            fetch_tier=fetch_tier,
            status_code=status_code,
            depth=depth,
            page_title=page_title,
            tag_managers=tag_managers,
            direct_tags=direct_tags,
            methodology=methodology,
            migration_status=migration,
            conflicts=conflicts,
            recommendations=recommendations,
            target_match=any(tm.matches_target for tm in tag_managers),
            scripts=list(scripts or []),
            parse_degraded=parse_degraded,
            escalation=escalation or EscalationInfo(),
            summary=self._summary(methodology, tag_managers, direct_tags),
        )

    @staticmethod
    def _methodology(platforms: list[str]) -> Methodology:
        if not platforms:
            return Methodology.NONE
        if len(platforms) == 1:
            return Methodology.SINGLE_MANAGED
        return Methodology.DUAL_MANAGED

    def _conflicts(
        self,
        methodology: Methodology,
        platforms: list[str],
        tag_managers: list[TagManagerFinding],
        direct_tags: list[DirectTagFinding],
    ) -> list[Conflict]:
        conflicts: list[Conflict] = []

        if methodology == Methodology.DUAL_MANAGED:
            conflicts.append(
                Conflict(
                    type="dual_implementation",
                    severity="high",
                    description=(
                        f"Multiple tag management platforms detected ({', '.join(platforms)}). "
                        "This risks duplicate tracking and inconsistent data"
                    ),
                    recommendation=(
                        f"Consolidate on {self.target_platform} and remove "
                        "the redundant container once parity is verified"
                    ),
                )
            )
            if any(dt.name == "ga4" for dt in direct_tags):
                conflicts.append(
                    Conflict(
                        type="analytics_duplication",
                        severity="critical",
                        description=(
                            "A hardcoded GA4 tag runs alongside two tag managers; "
                            "page views are likely counted more than once"
                        ),
                        recommendation="Fire GA4 from exactly one tag manager and remove the hardcoded gtag.js snippet",
                    )
                )

        for tm in tag_managers:
            if len(tm.ids) > 1:
                conflicts.append(
                    Conflict(
                        type="multiple_containers",
                        severity="medium",
                        description=f"{tm.platform} loads {len(tm.ids)} containers: {', '.join(tm.ids)}",
                        recommendation=f"Verify every {tm.platform} container is intended and not a leftover",
                    )
                )

        return conflicts

    def _migration_status(self, platforms: list[str]) -> MigrationStatus:
        has_source = self.source_platform in platforms
        has_target = self.target_platform in platforms
        if has_source and has_target:
            return MigrationStatus.IN_PROGRESS
        if has_target:
            return MigrationStatus.COMPLETE
        if has_source:
            return MigrationStatus.NOT_STARTED
        return MigrationStatus.UNKNOWN

    def _recommendations(
        self,
        methodology: Methodology,
        migration: MigrationStatus,
        conflicts: list[Conflict],
        direct_tags: list[DirectTagFinding],
    ) -> list[str]:
        recs: list[str] = [c.recommendation for c in conflicts]

        if methodology == Methodology.NONE:
            recs.append(f"No tag management platform detected; consider deploying {self.target_platform}")
        elif migration == MigrationStatus.NOT_STARTED:
            recs.append(f"Plan migration from {self.source_platform} to {self.target_platform}")
        elif migration == MigrationStatus.IN_PROGRESS:
            recs.append(
                f"Complete migration to {self.target_platform} and retire {self.source_platform}"
            )

        recs.extend(dt.recommendation for dt in direct_tags if dt.recommendation)
        return _unique(recs)

    @staticmethod
    def _summary(
        methodology: Methodology,
        tag_managers: list[TagManagerFinding],
        direct_tags: list[DirectTagFinding],
    ) -> str:
        if methodology == Methodology.NONE:
            summary = "No tag management platform detected"
        elif methodology == Methodology.SINGLE_MANAGED:
            tm = tag_managers[0]
            ident = f" ({tm.ids[0]})" if tm.ids else ""
            summary = f"{tm.platform}{ident}"
        else:
            summary = "Dual implementation: " + " + ".join(_unique([tm.platform for tm in tag_managers]))

        if direct_tags:
            summary += f"; {len(direct_tags)} direct tag(s): " + ", ".join(dt.platform for dt in direct_tags)
        return summary
