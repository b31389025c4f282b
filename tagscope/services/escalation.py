import structlog

from tagscope.config.constants import BLOCKING_STATUSES
from tagscope.config.settings import Settings, get_settings
from tagscope.models.detection import (
    DetectionOutcome,
    DetectionTarget,
    EscalationInfo,
    RawMatch,
)
from tagscope.models.scraping import ErrorKind, FetchTier
from tagscope.services.classifier import Classifier
from tagscope.services.detection import DetectionEngine, LightweightEngine, RenderEngine
from tagscope.utils.url import extract_domain

log = structlog.get_logger()

_RETRYABLE_KINDS = (ErrorKind.NETWORK_UNREACHABLE, ErrorKind.TIMEOUT)


def merge_matches(light: list[RawMatch], rendered: list[RawMatch]) -> list[RawMatch]:
    """Per signature, keep whichever tier found more matches."""
    by_light: dict[str, list[RawMatch]] = {}
    by_rendered: dict[str, list[RawMatch]] = {}
    for m in light:
        by_light.setdefault(m.signature_name, []).append(m)
    for m in rendered:
        by_rendered.setdefault(m.signature_name, []).append(m)

    merged: list[RawMatch] = []
    for name in dict.fromkeys([*by_light, *by_rendered]):
        light_matches = by_light.get(name, [])
        rendered_matches = by_rendered.get(name, [])
        merged.extend(rendered_matches if len(rendered_matches) > len(light_matches) else light_matches)
    return merged


class EscalationService:
    """Runs the lightweight tier first and escalates to a full render when warranted."""

    def __init__(
        self,
        settings: Settings | None = None,
        lightweight: DetectionEngine | None = None,
        rendered: DetectionEngine | None = None,
        classifier: Classifier | None = None,
    ):
        self.settings = settings or get_settings()
        self.classifier = classifier or Classifier(self.settings)
        self.lightweight = lightweight or LightweightEngine(classifier=self.classifier, settings=self.settings)
        self.rendered = rendered or RenderEngine(classifier=self.classifier, settings=self.settings)
        self.log = log.bind(service="escalation")

    def should_escalate(self, outcome: DetectionOutcome, url: str) -> str | None:
        """Return the escalation reason, or None when the lightweight result stands."""
        finding = outcome.finding

        if not finding.success:
            if finding.error_kind in _RETRYABLE_KINDS:
                return finding.error_kind.value
            if finding.error_kind == ErrorKind.HTTP_ERROR and finding.status_code in BLOCKING_STATUSES:
                return f"blocked_status_{finding.status_code}"
            return None

        if self._is_listed_host(url):
            return "listed_host"

        if self.settings.escalate_on_captcha and outcome.captcha_detected:
            return "captcha_detected"

        script_count = outcome.document.script_count if outcome.document else len(finding.scripts)
        if (
            script_count > self.settings.escalation_script_threshold
            and not finding.tag_managers
            and not finding.direct_tags
        ):
            return "suspiciously_empty"

        return None

    def _is_listed_host(self, url: str) -> bool:
        domain = extract_domain(url)
        return any(domain == host or domain.endswith("." + host) for host in self.settings.escalation_hosts)

    async def detect(self, url: str, target: DetectionTarget | None = None) -> DetectionOutcome:
        light = await self.lightweight.detect(url, target)
        reason = self.should_escalate(light, url)
        if reason is None:
            return light

        self.log.info("escalating_scan", url=url, reason=reason)

        try:
            rendered = await self.rendered.detect(url, target)
        except Exception as e:
            self.log.exception("render_engine_error", url=url)
            return self._escalation_failed(light, reason, str(e))

        if not rendered.finding.success:
            return self._escalation_failed(light, reason, rendered.finding.error)

        info = EscalationInfo(attempted=True, reason=reason, succeeded=True)
        self.log.info("escalation_result", url=url, reason=reason, success=True)

        if not light.finding.success:
            return rendered.model_copy(
                update={"finding": rendered.finding.model_copy(update={"escalation": info})}
            )

        return self._merge(url, target, light, rendered, info)

    def _escalation_failed(
        self, light: DetectionOutcome, reason: str, error: str | None
    ) -> DetectionOutcome:
        self.log.warning("escalation_result", url=light.finding.url, reason=reason, success=False, error=error)
        info = EscalationInfo(attempted=True, reason=reason, failed=True, error=error)
        return light.model_copy(update={"finding": light.finding.model_copy(update={"escalation": info})})

    def _merge(
        self,
        url: str,
        target: DetectionTarget | None,
        light: DetectionOutcome,
        rendered: DetectionOutcome,
        info: EscalationInfo,
    ) -> DetectionOutcome:
        matches = merge_matches(light.matches, rendered.matches)
        scripts = list(dict.fromkeys([*light.finding.scripts, *rendered.finding.scripts]))

        finding = self.classifier.classify(
            matches,
            target,
            url=url,
            fetch_tier=FetchTier.RENDERED,
            status_code=rendered.finding.status_code,
            page_title=rendered.finding.page_title or light.finding.page_title,
            scripts=scripts,
            parse_degraded=light.finding.parse_degraded or rendered.finding.parse_degraded,
            escalation=info,
        )
        return DetectionOutcome(
            finding=finding,
            html=rendered.html or light.html,
            final_url=rendered.final_url or light.final_url,
            matches=matches,
            document=rendered.document,
            captcha_detected=rendered.captcha_detected,
        )
