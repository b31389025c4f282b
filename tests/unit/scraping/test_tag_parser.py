import pytest

from tagscope.data.tag_signatures import GOOGLE_TAG_MANAGER, TEALIUM
from tagscope.models.detection import InlineScript, LoadAttribute, ScriptRef, SourceLocation
from tagscope.scraping.parser.tag_parser import TagParser


@pytest.fixture
def parser() -> TagParser:
    return TagParser()


def _inline(text: str, creates: bool = False) -> InlineScript:
    return InlineScript(text=text, creates_script=creates)


class TestSignaturePrecision:
    @pytest.mark.parametrize(
        "text",
        [
            "var code = 'GTM-AB12';",  # too short
            "var code = 'GTM-ABCDEFGHIJK';",  # too long
            "var code = 'XGTM-ABC1234';",  # embedded in a longer token
            "var code = 'GTM-abc1234';",  # wrong case
        ],
    )
    def test_gtm_rejects_wrong_format(self, parser, text):
        assert parser.match([], [_inline(text)], []) == []

    def test_gtm_accepts_valid_container(self, parser):
        matches = parser.match([], [_inline("dataLayer; 'GTM-ABC1234'")], [])

        assert len(matches) == 1
        assert matches[0].captured_id == "GTM-ABC1234"

    @pytest.mark.parametrize("mid", ["G-ABC123", "G-ABCDEFGHIJKL"])
    def test_ga4_rejects_wrong_length(self, parser, mid):
        ref = ScriptRef(src=f"https://www.googletagmanager.com/gtag/js?id={mid}")

        assert parser.match([ref], [], []) == []

    def test_meta_pixel_rejects_short_ids(self, parser):
        assert parser.match([], [_inline("fbq('init', '12345');")], []) == []


class TestTagParser:
    def test_tealium_path_id_from_any_host(self, parser):
        ref = ScriptRef(src="https://cdn.example.test/utag/acct/prof/qa/utag.js", is_async=True)
        matches = parser.match([ref], [], [])

        assert len(matches) == 1
        assert matches[0].signature_name == TEALIUM.name
        assert matches[0].captured_id == "acct/prof/qa"
        assert matches[0].load_attribute == LoadAttribute.ASYNC

    def test_tealium_sync_loader(self, parser):
        ref = ScriptRef(src="https://tags.tiqcdn.com/utag/acct/prof/prod/utag.sync.js")

        assert parser.match([ref], [], [])[0].captured_id == "acct/prof/prod"

    def test_tealium_version_is_attached(self, parser):
        ref = ScriptRef(src="https://tags.tiqcdn.com/utag/acct/prof/prod/utag.js")
        inline = _inline("var utag_cfg = {}; utv = 'ut4.49.202401011200';")
        matches = parser.match([ref], [inline], [])

        assert matches[0].version == "ut4.49.202401011200"

    def test_inline_loader_records_script_creation(self, parser):
        loader = _inline(
            "(function(a,b,c,d){a='//tags.tiqcdn.com/utag/acct/prof/prod/utag.js';"
            "d=document.createElement('script');d.src=a;})()",
            creates=True,
        )
        matches = parser.match([], [loader], [])

        assert matches[0].source == SourceLocation.INLINE_SCRIPT
        assert matches[0].script_creation is True

    def test_duplicates_collapse_per_source(self, parser):
        refs = [
            ScriptRef(src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC1234"),
            ScriptRef(src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC1234&l=dl"),
        ]
        inline = [_inline("'GTM-ABC1234'"), _inline("push('GTM-ABC1234')")]
        matches = parser.match(refs, inline, [])

        assert [(m.signature_name, m.source) for m in matches] == [
            (GOOGLE_TAG_MANAGER.name, SourceLocation.EXTERNAL_SCRIPT),
            (GOOGLE_TAG_MANAGER.name, SourceLocation.INLINE_SCRIPT),
        ]

    def test_direct_tags(self, parser):
        refs = [
            ScriptRef(src="https://analytics.tiktok.com/i18n/pixel/events.js"),
            ScriptRef(src="https://sc-static.net/scevent.min.js"),
            ScriptRef(src="https://www.google-analytics.com/analytics.js"),
        ]
        inline = [
            _inline("ttq.load('C4ABCDEFGHIJKLMNOPQR');"),
            _inline("snaptr('init', '0f1e2d3c-4b5a-6978-8a9b-0c1d2e3f4a5b');"),
            _inline("ga('create', 'UA-12345678-1', 'auto');"),
        ]
        names = {m.signature_name for m in parser.match(refs, inline, [])}

        assert names == {"tiktok_pixel", "snap_pixel", "universal_analytics"}

    def test_linkedin_noscript_pixel(self, parser):
        block = '<img src="https://px.ads.linkedin.com/collect/?pid=1234567&fmt=gif" />'
        matches = parser.match([], [], [block])

        assert matches[0].signature_name == "linkedin_insight"
        assert matches[0].captured_id == "1234567"
        assert matches[0].source == SourceLocation.NOSCRIPT
