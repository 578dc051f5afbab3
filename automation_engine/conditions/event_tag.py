"""EventTagMatcher — deterministic matcher for ``direct_tag`` rules.

The matcher never calls the ConditionEngine or the WorkflowRunner and never
performs fuzzy matching.  Given an event and a rule it answers *matched or
not* and always explains why.

Evaluation order
----------------
1. Rule type must be ``direct_tag``.
2. Channel — only compared when both the rule and the event carry one.
3. Tag — ``extracted_tags`` (case-insensitive), else ``metadata["tags"]``
   (bare words normalised to ``#word``), else substring search of
   ``subject + body + input``.
4. Structured conditions in declared order; the first failure stops the
   match but earlier results stay in ``condition_results``.
5. Legacy ``expected_context`` / ``website_filter`` strings, evaluated as
   implicit ``body_keywords`` / ``website_filter`` conditions when the rule
   has no structured condition of that type.

Usage::

    matcher = EventTagMatcher()
    result = matcher.evaluate(event, rule)
    if result.matched:
        ...
"""

from __future__ import annotations

import re
import time
from typing import Any, Iterable

from automation_engine.conditions.models import (
    BodyKeywordsCondition,
    ConditionResult,
    EventTagCondition,
    EventTagMatchResult,
    SenderWhitelistCondition,
    StampValidCondition,
    TriggerValidation,
    UnifiedTriggerConfig,
    UnifiedTriggerType,
    WebsiteFilterCondition,
)
from automation_engine.events.models import (
    EventChannel,
    NormalizedEvent,
    TriggerScope,
    TriggerSource,
    new_event_id,
)
from automation_engine.logging import get_logger

log = get_logger(__name__)

_TAG_PATTERN = re.compile(r"#[\w-]+")
_VALID_TAG = re.compile(r"^#[\w-]+$")
_VALID_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def extract_tags(text: str) -> list[str]:
    """Return the ``#tags`` in *text*, lowercased, de-duplicated, in order."""
    return list(dict.fromkeys(t.lower() for t in _TAG_PATTERN.findall(text or "")))


def normalize_email_event(
    subject: str,
    body: str,
    sender_address: str,
    stamp_valid: bool | None = None,
    stamp_data: dict[str, Any] | None = None,
    id: str | None = None,
    timestamp: float | None = None,
) -> NormalizedEvent:
    """Build an email-channel event with tags extracted from subject + body."""
    combined = f"{subject} {body}"
    tags = extract_tags(combined)
    return NormalizedEvent(
        id=id or new_event_id(),
        timestamp=timestamp if timestamp is not None else time.time(),
        source=TriggerSource.API,
        channel=EventChannel.EMAIL,
        scope=TriggerScope.GLOBAL,
        input=combined,
        subject=subject,
        body=body,
        sender_address=sender_address,
        stamp_valid=stamp_valid,
        stamp_data=stamp_data,
        extracted_tags=tuple(tags),
        metadata={"tags": tags},
    )


def _wildcard_regex(pattern: str) -> re.Pattern[str]:
    escaped = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{escaped}$", re.IGNORECASE)


class EventTagMatcher:
    """Stateless matcher for tag rules."""

    # ---------------------------------------------------------------------------
    # Matching
    # ---------------------------------------------------------------------------

    def evaluate(self, event: NormalizedEvent, trigger: UnifiedTriggerConfig) -> EventTagMatchResult:
        def result(matched: bool, reason: str, **kw: Any) -> EventTagMatchResult:
            return EventTagMatchResult(matched=matched, trigger_id=trigger.id, reason=reason, **kw)

        if trigger.type != UnifiedTriggerType.DIRECT_TAG:
            return result(False, "Not a direct_tag trigger")

        if trigger.channel is not None and event.channel is not None:
            if trigger.channel != event.channel:
                return result(
                    False,
                    f"Channel mismatch: expected {trigger.channel.value}, got {event.channel.value}",
                )

        tag = trigger.effective_tag
        if not tag:
            return result(False, "No tag configured")
        if not self._match_tag(event, tag):
            return result(False, f"Tag {tag} not found in event")

        conditions = trigger.event_tag_conditions
        results: list[ConditionResult] = []
        for condition in conditions:
            outcome = self.evaluate_condition(event, condition)
            results.append(outcome)
            if not outcome.passed:
                return result(
                    False,
                    f"Condition failed: {outcome.type} - {outcome.details}",
                    condition_results=results,
                )

        declared = {c.type for c in conditions}

        if trigger.expected_context and "body_keywords" not in declared:
            keywords = [k.strip() for k in trigger.expected_context.split(",") if k.strip()]
            if keywords:
                outcome = self._body_keywords(event, BodyKeywordsCondition(keywords=keywords))
                results.append(outcome)
                if not outcome.passed:
                    return result(
                        False,
                        f"Legacy context condition failed: {outcome.details}",
                        condition_results=results,
                    )

        if trigger.website_filter and "website_filter" not in declared:
            outcome = self._website_filter(
                event, WebsiteFilterCondition(patterns=[trigger.website_filter])
            )
            results.append(outcome)
            if not outcome.passed:
                return result(
                    False,
                    f"Legacy website filter failed: {outcome.details}",
                    condition_results=results,
                )

        reason = f"Matched tag {tag}"
        if conditions:
            reason += f" with {len(conditions)} conditions"
        return result(True, reason, condition_results=results, matched_tag=tag.lower())

    def evaluate_many(
        self, event: NormalizedEvent, triggers: Iterable[UnifiedTriggerConfig]
    ) -> list[EventTagMatchResult]:
        """Evaluate every enabled rule and return only the matches."""
        matches = []
        for trigger in triggers:
            if not trigger.enabled:
                continue
            outcome = self.evaluate(event, trigger)
            log.debug(
                "tag_rule_evaluated",
                trigger_id=trigger.id,
                event_id=event.id,
                matched=outcome.matched,
                reason=outcome.reason,
            )
            if outcome.matched:
                matches.append(outcome)
        return matches

    def _match_tag(self, event: NormalizedEvent, tag: str) -> bool:
        wanted = tag.lower()
        if event.extracted_tags:
            return any(t.lower() == wanted for t in event.extracted_tags)

        metadata_tags = event.metadata.get("tags")
        if isinstance(metadata_tags, (list, tuple)) and metadata_tags:
            for t in metadata_tags:
                t = str(t).lower()
                if (t if t.startswith("#") else f"#{t}") == wanted:
                    return True
            return False

        return wanted in _search_text(event).lower()

    # ---------------------------------------------------------------------------
    # Condition evaluators
    # ---------------------------------------------------------------------------

    def evaluate_condition(
        self, event: NormalizedEvent, condition: EventTagCondition
    ) -> ConditionResult:
        if isinstance(condition, StampValidCondition):
            return self._stamp_valid(event, condition)
        if isinstance(condition, SenderWhitelistCondition):
            return self._sender_whitelist(event, condition)
        if isinstance(condition, BodyKeywordsCondition):
            return self._body_keywords(event, condition)
        if isinstance(condition, WebsiteFilterCondition):
            return self._website_filter(event, condition)
        return ConditionResult("unknown", False, f"Unknown condition type: {condition.type}")

    def _stamp_valid(self, event: NormalizedEvent, condition: StampValidCondition) -> ConditionResult:
        if not condition.required:
            return ConditionResult(condition.type, True, "Stamp not required")
        passed = event.stamp_valid is True
        details = "Stamp validation passed" if passed else "Stamp validation failed or not present"
        return ConditionResult(condition.type, passed, details)

    def _sender_whitelist(
        self, event: NormalizedEvent, condition: SenderWhitelistCondition
    ) -> ConditionResult:
        if not condition.allowed_senders:
            return ConditionResult(condition.type, True, "No senders in whitelist")
        sender = (event.sender_address or "").lower()
        if not sender:
            return ConditionResult(condition.type, False, "No sender address in event")
        passed = sender in {s.lower() for s in condition.allowed_senders}
        details = f"Sender {sender} is in whitelist" if passed else f"Sender {sender} not in whitelist"
        return ConditionResult(condition.type, passed, details)

    def _body_keywords(
        self, event: NormalizedEvent, condition: BodyKeywordsCondition
    ) -> ConditionResult:
        if not condition.keywords:
            return ConditionResult(condition.type, True, "No keywords specified")
        text = _search_text(event)
        if condition.case_insensitive:
            text = text.lower()
        for keyword in condition.keywords:
            needle = keyword.lower() if condition.case_insensitive else keyword
            if needle in text:
                return ConditionResult(condition.type, True, f'Matched keyword: "{keyword}"')
        return ConditionResult(
            condition.type, False, f"None of {len(condition.keywords)} keywords found"
        )

    def _website_filter(
        self, event: NormalizedEvent, condition: WebsiteFilterCondition
    ) -> ConditionResult:
        if not condition.patterns:
            return ConditionResult(condition.type, True, "No patterns specified")
        url = (event.url or "").lower()
        domain = (event.domain or "").lower()
        if not url and not domain:
            if event.channel != EventChannel.WEB:
                return ConditionResult(condition.type, True, "Not a web event")
            return ConditionResult(condition.type, False, "No URL in web event")

        for pattern in condition.patterns:
            if self._match_url_pattern(pattern.lower(), url, domain):
                return ConditionResult(condition.type, True, f'Matched pattern: "{pattern}"')
        return ConditionResult(
            condition.type, False, f"URL {url or domain} did not match any patterns"
        )

    @staticmethod
    def _match_url_pattern(pattern: str, url: str, domain: str) -> bool:
        regex = _wildcard_regex(pattern)
        if url and regex.match(url):
            return True
        if domain and regex.match(domain):
            return True
        return bool(url) and pattern.replace("*", "") in url

    # ---------------------------------------------------------------------------
    # Validation
    # ---------------------------------------------------------------------------

    def validate_trigger(self, trigger: UnifiedTriggerConfig) -> TriggerValidation:
        """Structural checks for a tag rule.  Legacy fields produce warnings."""
        if trigger.type != UnifiedTriggerType.DIRECT_TAG:
            return TriggerValidation(valid=True)

        errors: list[str] = []
        warnings: list[str] = []

        tag = trigger.effective_tag
        if not tag:
            errors.append("Tag is required")
        elif not tag.startswith("#"):
            errors.append("Tag must start with #")
        elif not _VALID_TAG.match(tag):
            errors.append("Tag must contain only letters, numbers, hyphens, and underscores")

        for condition in trigger.event_tag_conditions:
            errors.extend(self._validate_condition(condition))

        declared = {c.type for c in trigger.event_tag_conditions}
        if trigger.tag_name:
            warnings.append("tag_name is deprecated, use tag instead")
        if trigger.expected_context:
            warnings.append(
                "expected_context is deprecated, use event_tag_conditions with body_keywords instead"
            )
        if trigger.website_filter and "website_filter" not in declared:
            warnings.append(
                "website_filter is deprecated, use event_tag_conditions with website_filter instead"
            )

        return TriggerValidation(valid=not errors, errors=errors, warnings=warnings)

    @staticmethod
    def _validate_condition(condition: EventTagCondition) -> list[str]:
        if isinstance(condition, StampValidCondition):
            return []
        if isinstance(condition, SenderWhitelistCondition):
            if not condition.allowed_senders:
                return ["Sender whitelist must have at least one email address"]
            return [
                f"Invalid email format: {sender}"
                for sender in condition.allowed_senders
                if not _VALID_EMAIL.match(sender)
            ]
        if isinstance(condition, BodyKeywordsCondition):
            if not condition.keywords:
                return ["Body keywords must have at least one keyword"]
            return []
        if isinstance(condition, WebsiteFilterCondition):
            if not condition.patterns:
                return ["Website filter must have at least one pattern"]
            return []
        return [f"Unknown condition type: {condition.type}"]

    # Static helpers re-exported for callers that only hold the class.
    extract_tags = staticmethod(extract_tags)
    normalize_email_event = staticmethod(normalize_email_event)


def _search_text(event: NormalizedEvent) -> str:
    return " ".join(part for part in (event.subject, event.body, event.input) if part)
