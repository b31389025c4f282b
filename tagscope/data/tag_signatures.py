"""Signature catalog for tag-management platforms and directly embedded tags."""

import re
from dataclasses import dataclass

from tagscope.models.detection import SignatureCategory

# Identifier boundaries: no alphanumerics (or id separators) on either side
_L = r"(?<![A-Za-z0-9-])"
_R = r"(?![A-Za-z0-9])"

_SEGMENT = r"[^/?#\s\"'\\]+"
_UTAG_PATH = re.compile(rf"/utag/({_SEGMENT})/({_SEGMENT})/({_SEGMENT})/utag(?:\.sync)?\.js")


@dataclass(frozen=True)
class TagSignature:
    name: str
    platform: str
    category: SignatureCategory
    id_format: re.Pattern[str]
    script_pattern: re.Pattern[str] | None = None
    inline_patterns: tuple[re.Pattern[str], ...] = ()
    noscript_pattern: re.Pattern[str] | None = None
    id_fields: tuple[str, ...] = ("container_id",)
    version_pattern: re.Pattern[str] | None = None
    hints: tuple[str, ...] = ()
    recommendation: str = ""

    @property
    def is_tag_manager(self) -> bool:
        return self.category == SignatureCategory.TAG_MANAGER

    @property
    def is_path_id(self) -> bool:
        return len(self.id_fields) > 1

    def extract_id(self, match: re.Match[str]) -> str | None:
        """Build the identifier from a pattern match, validated against ``id_format``.

        Multi-group patterns produce a path-like id (``account/profile/env``).
        Returns None when the pattern has no capture groups or the captured
        text does not conform to the identifier format.
        """
        groups = [g for g in match.groups() if g is not None]
        if not groups:
            return None
        captured = "/".join(groups)
        if not self.id_format.fullmatch(captured):
            return None
        return captured

    def split_id(self, identifier: str) -> dict[str, str]:
        """Map a captured identifier onto this signature's id fields."""
        if self.is_path_id:
            return dict(zip(self.id_fields, identifier.split("/"), strict=False))
        return {self.id_fields[0]: identifier}


TEALIUM = TagSignature(
    name="tealium_iq",
    platform="Tealium",
    category=SignatureCategory.TAG_MANAGER,
    # Host-independent so self-hosted and CDN-proxied utag paths are recognized
    script_pattern=_UTAG_PATH,
    inline_patterns=(_UTAG_PATH,),
    id_format=re.compile(r"[A-Za-z0-9_.\-]+/[A-Za-z0-9_.\-]+/[A-Za-z0-9_.\-]+"),
    id_fields=("account", "profile", "environment"),
    version_pattern=re.compile(r"\butv\s*[=:]\s*[\"']?(ut\d+\.\d+(?:\.\d+)*)"),
    hints=("utag.js", "tiqcdn.com", "utag_data", "/utag/"),
)

GOOGLE_TAG_MANAGER = TagSignature(
    name="google_tag_manager",
    platform="Google Tag Manager",
    category=SignatureCategory.TAG_MANAGER,
    script_pattern=re.compile(
        rf"googletagmanager\.com/gtm\.js\?(?:[^\"'\s]*&)?id=(GTM-[A-Z0-9]{{6,8}}){_R}"
    ),
    inline_patterns=(re.compile(rf"{_L}(GTM-[A-Z0-9]{{6,8}}){_R}"),),
    noscript_pattern=re.compile(
        rf"googletagmanager\.com/ns\.html\?(?:[^\"'\s]*&)?id=(GTM-[A-Z0-9]{{6,8}}){_R}"
    ),
    id_format=re.compile(r"GTM-[A-Z0-9]{6,8}"),
    hints=("googletagmanager.com/gtm.js", "gtm.js", "GTM-", "gtm.start"),
)

GA4 = TagSignature(
    name="ga4",
    platform="Google Analytics 4",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(
        rf"googletagmanager\.com/gtag/js\?(?:[^\"'\s]*&)?id=(G-[A-Z0-9]{{10}}){_R}"
    ),
    inline_patterns=(
        re.compile(rf"gtag\(\s*['\"]config['\"]\s*,\s*['\"](G-[A-Z0-9]{{10}})['\"]"),
    ),
    id_format=re.compile(r"G-[A-Z0-9]{10}"),
    id_fields=("measurement_id",),
    hints=("gtag/js", "gtag("),
    recommendation="Move the GA4 configuration into the tag manager to avoid duplicate page views",
)

GOOGLE_ADS = TagSignature(
    name="google_ads",
    platform="Google Ads",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(
        rf"googletagmanager\.com/gtag/js\?(?:[^\"'\s]*&)?id=(AW-\d{{9,11}}){_R}"
    ),
    inline_patterns=(
        re.compile(rf"gtag\(\s*['\"]config['\"]\s*,\s*['\"](AW-\d{{9,11}})['\"]"),
    ),
    id_format=re.compile(r"AW-\d{9,11}"),
    id_fields=("conversion_id",),
    hints=("gtag/js", "AW-"),
    recommendation="Manage Google Ads conversion tracking through the tag manager",
)

UNIVERSAL_ANALYTICS = TagSignature(
    name="universal_analytics",
    platform="Universal Analytics",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(r"google-analytics\.com/(?:analytics|ga)\.js"),
    inline_patterns=(
        re.compile(rf"{_L}(UA-\d{{4,10}}-\d{{1,4}}){_R}"),
    ),
    id_format=re.compile(r"UA-\d{4,10}-\d{1,4}"),
    id_fields=("property_id",),
    hints=("google-analytics.com", "UA-"),
    recommendation="Universal Analytics is sunset; replace with GA4 managed by the tag manager",
)

META_PIXEL = TagSignature(
    name="meta_pixel",
    platform="Meta Pixel",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(r"connect\.facebook\.net/[a-zA-Z_]+/fbevents\.js"),
    inline_patterns=(
        re.compile(r"fbq\(\s*['\"]init['\"]\s*,\s*['\"](\d{15,16})['\"]"),
    ),
    noscript_pattern=re.compile(r"facebook\.com/tr\?(?:[^\"'\s]*&(?:amp;)?)?id=(\d{15,16})(?!\d)"),
    id_format=re.compile(r"\d{15,16}"),
    id_fields=("pixel_id",),
    hints=("fbevents.js", "fbq(", "facebook.com/tr"),
    recommendation="Deploy the Meta Pixel through the tag manager",
)

TIKTOK_PIXEL = TagSignature(
    name="tiktok_pixel",
    platform="TikTok Pixel",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(r"analytics\.tiktok\.com/i18n/pixel/events\.js"),
    inline_patterns=(
        re.compile(r"ttq\.load\(\s*['\"]([A-Z0-9]{20})['\"]"),
    ),
    id_format=re.compile(r"[A-Z0-9]{20}"),
    id_fields=("pixel_id",),
    hints=("analytics.tiktok.com", "ttq."),
    recommendation="Deploy the TikTok Pixel through the tag manager",
)

LINKEDIN_INSIGHT = TagSignature(
    name="linkedin_insight",
    platform="LinkedIn Insight",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(r"snap\.licdn\.com/li\.lms-analytics/insight\.min\.js"),
    inline_patterns=(
        re.compile(r"_linkedin_partner_id\s*=\s*['\"]?(\d{5,8})(?!\d)"),
    ),
    noscript_pattern=re.compile(r"px\.ads\.linkedin\.com/collect/?\?(?:[^\"'\s]*&(?:amp;)?)?pid=(\d{5,8})(?!\d)"),
    id_format=re.compile(r"\d{5,8}"),
    id_fields=("partner_id",),
    hints=("snap.licdn.com", "_linkedin_partner_id", "px.ads.linkedin.com"),
    recommendation="Deploy the LinkedIn Insight Tag through the tag manager",
)

SNAP_PIXEL = TagSignature(
    name="snap_pixel",
    platform="Snap Pixel",
    category=SignatureCategory.DIRECT_TAG,
    script_pattern=re.compile(r"sc-static\.net/scevent\.min\.js"),
    inline_patterns=(
        re.compile(
            r"snaptr\(\s*['\"]init['\"]\s*,\s*['\"]"
            r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})['\"]"
        ),
    ),
    id_format=re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"),
    id_fields=("pixel_id",),
    hints=("sc-static.net", "snaptr("),
    recommendation="Deploy the Snap Pixel through the tag manager",
)

TAG_SIGNATURES: tuple[TagSignature, ...] = (
    TEALIUM,
    GOOGLE_TAG_MANAGER,
    GA4,
    GOOGLE_ADS,
    UNIVERSAL_ANALYTICS,
    META_PIXEL,
    TIKTOK_PIXEL,
    LINKEDIN_INSIGHT,
    SNAP_PIXEL,
)

SIGNATURES_BY_NAME: dict[str, TagSignature] = {sig.name: sig for sig in TAG_SIGNATURES}

TAG_MANAGER_PLATFORMS: tuple[str, ...] = tuple(
    sig.platform for sig in TAG_SIGNATURES if sig.is_tag_manager
)

ALL_HINTS: tuple[str, ...] = tuple(
    dict.fromkeys(hint.lower() for sig in TAG_SIGNATURES for hint in sig.hints)
)
