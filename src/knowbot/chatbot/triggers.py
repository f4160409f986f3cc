"""Logic triggers: keyword and rule based side effects of a chat turn.

A logic pairs a feature (lead form, link button, meeting scheduler) with
the rule that fires it.  Raw configuration is parsed once, at the
boundary, into :class:`Trigger` objects whose ``config`` is the typed
payload of the feature.  Only ``KEYWORD`` triggers are decided from the
utterance; the other kinds are driven by the widget (``ALWAYS``,
``MANUAL``, ``TIME_DELAY``, ``END_OF_CONVERSATION``) or by the lead-form
check (``MESSAGE_COUNT``).
"""

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias

import structlog

from knowbot.errors import TriggerParseError

_logger = structlog.get_logger()


class FeatureType(StrEnum):
    LEAD_COLLECTION = "LEAD_COLLECTION"
    LINK_BUTTON = "LINK_BUTTON"
    SCHEDULE_MEETING = "SCHEDULE_MEETING"


class TriggerKind(StrEnum):
    KEYWORD = "KEYWORD"
    ALWAYS = "ALWAYS"
    MANUAL = "MANUAL"
    END_OF_CONVERSATION = "END_OF_CONVERSATION"
    MESSAGE_COUNT = "MESSAGE_COUNT"
    TIME_DELAY = "TIME_DELAY"


# -- Feature payloads --------------------------------------------------------


@dataclass(frozen=True)
class LeadCollectionConfig:
    form_title: str = ""
    form_description: str = ""
    fields: tuple[str, ...] = ()
    success_message: str = ""


@dataclass(frozen=True)
class LinkButtonConfig:
    button_text: str
    button_link: str
    open_in_new_tab: bool = True


@dataclass(frozen=True)
class MeetingScheduleConfig:
    calendar_link: str
    calendar_type: str = "CUSTOM"
    duration_minutes: int = 30
    timezone: str = ""


FeatureConfig: TypeAlias = LeadCollectionConfig | LinkButtonConfig | MeetingScheduleConfig


# -- Trigger -----------------------------------------------------------------


@dataclass(frozen=True)
class Trigger:
    id: str
    name: str
    feature_type: FeatureType
    kind: TriggerKind
    config: FeatureConfig
    keywords: frozenset[str] = field(default_factory=frozenset)
    message_count: int = 1
    time_delay_seconds: int | None = None

    def matches(self, utterance: str) -> bool:
        return _MATCHERS[self.kind](self, utterance)


def _match_keywords(trigger: Trigger, utterance: str) -> bool:
    lowered = utterance.lower()
    return any(keyword.lower() in lowered for keyword in trigger.keywords if keyword)


def _never(trigger: Trigger, utterance: str) -> bool:
    return False


_MATCHERS: dict[TriggerKind, Callable[[Trigger, str], bool]] = {
    TriggerKind.KEYWORD: _match_keywords,
    TriggerKind.ALWAYS: _never,
    TriggerKind.MANUAL: _never,
    TriggerKind.END_OF_CONVERSATION: _never,
    TriggerKind.MESSAGE_COUNT: _never,
    TriggerKind.TIME_DELAY: _never,
}


# -- Parsing -----------------------------------------------------------------


def _parse_keywords(raw: Any, trigger_id: str) -> frozenset[str]:
    """Accept a YAML list or a JSON-encoded list of strings."""
    if raw is None:
        return frozenset()

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TriggerParseError(
                f"keywords are not valid JSON: {exc}", trigger_id=trigger_id
            ) from exc

    if not isinstance(raw, list) or not all(isinstance(k, str) for k in raw):
        raise TriggerParseError("keywords must be a list of strings", trigger_id=trigger_id)

    return frozenset(k.strip() for k in raw if k.strip())


def _parse_lead_collection(raw: dict[str, Any], trigger_id: str) -> LeadCollectionConfig:
    return LeadCollectionConfig(
        form_title=str(raw.get("form_title", "")),
        form_description=str(raw.get("form_description", "")),
        fields=tuple(str(f) for f in raw.get("fields", [])),
        success_message=str(raw.get("success_message", "")),
    )


def _parse_link_button(raw: dict[str, Any], trigger_id: str) -> LinkButtonConfig:
    button_text = raw.get("button_text", "")
    button_link = raw.get("button_link", "")
    if not button_text or not button_link:
        raise TriggerParseError(
            "link button needs 'button_text' and 'button_link'", trigger_id=trigger_id
        )
    return LinkButtonConfig(
        button_text=str(button_text),
        button_link=str(button_link),
        open_in_new_tab=bool(raw.get("open_in_new_tab", True)),
    )


def _parse_meeting_schedule(raw: dict[str, Any], trigger_id: str) -> MeetingScheduleConfig:
    calendar_link = raw.get("calendar_link", "")
    if not calendar_link:
        raise TriggerParseError("meeting schedule needs 'calendar_link'", trigger_id=trigger_id)
    return MeetingScheduleConfig(
        calendar_link=str(calendar_link),
        calendar_type=str(raw.get("calendar_type", "CUSTOM")).upper(),
        duration_minutes=int(raw.get("duration_minutes", 30)),
        timezone=str(raw.get("timezone", "")),
    )


_FEATURE_PARSERS: dict[FeatureType, Callable[[dict[str, Any], str], FeatureConfig]] = {
    FeatureType.LEAD_COLLECTION: _parse_lead_collection,
    FeatureType.LINK_BUTTON: _parse_link_button,
    FeatureType.SCHEDULE_MEETING: _parse_meeting_schedule,
}


def parse_trigger(raw: dict[str, Any]) -> Trigger:
    if not isinstance(raw, dict):
        raise TriggerParseError(
            f"logic must be a mapping, got {type(raw).__name__}", trigger_id=""
        )

    trigger_id = str(raw.get("id") or raw.get("name") or "")
    if not trigger_id:
        raise TriggerParseError("logic has neither 'id' nor 'name'", trigger_id="")

    try:
        feature_type = FeatureType(str(raw["feature"]).upper())
        kind = TriggerKind(str(raw.get("trigger", TriggerKind.KEYWORD)).upper())
    except (KeyError, ValueError) as exc:
        raise TriggerParseError(f"invalid feature or trigger: {exc}", trigger_id=trigger_id) from exc

    payload = raw.get("config") or {}
    if not isinstance(payload, dict):
        raise TriggerParseError("'config' must be a mapping", trigger_id=trigger_id)

    try:
        message_count = int(raw.get("message_count", 1))
        time_delay = raw.get("time_delay_seconds")
        time_delay_seconds = int(time_delay) if time_delay is not None else None
    except (TypeError, ValueError) as exc:
        raise TriggerParseError(f"invalid trigger settings: {exc}", trigger_id=trigger_id) from exc

    try:
        config = _FEATURE_PARSERS[feature_type](payload, trigger_id)
    except (TypeError, ValueError) as exc:
        raise TriggerParseError(
            f"invalid {feature_type} config: {exc}", trigger_id=trigger_id
        ) from exc

    return Trigger(
        id=trigger_id,
        name=str(raw.get("name", trigger_id)),
        feature_type=feature_type,
        kind=kind,
        config=config,
        keywords=_parse_keywords(raw.get("keywords"), trigger_id),
        message_count=message_count,
        time_delay_seconds=time_delay_seconds,
    )


def parse_triggers(raw_logics: Sequence[dict[str, Any]], chatbot_id: str = "") -> list[Trigger]:
    """Parse the active logics of a chatbot, skipping the ones that do not parse."""
    triggers: list[Trigger] = []
    for raw in raw_logics:
        if isinstance(raw, dict) and not raw.get("is_active", True):
            continue
        try:
            triggers.append(parse_trigger(raw))
        except TriggerParseError as exc:
            _logger.warning(
                "trigger_skipped",
                chatbot_id=chatbot_id,
                trigger_id=exc.trigger_id,
                error=str(exc),
            )
    return triggers


# -- Evaluation --------------------------------------------------------------


def evaluate_triggers(triggers: Sequence[Trigger], utterance: str) -> list[Trigger]:
    triggered = [trigger for trigger in triggers if trigger.matches(utterance)]
    if triggered:
        _logger.info("triggers_matched", trigger_ids=[t.id for t in triggered])
    return triggered


def logic_hints(triggered: Sequence[Trigger]) -> str:
    """Describe the actions the answer may offer, for the fallback prompt."""
    hints: list[str] = []
    for trigger in triggered:
        match trigger.config:
            case LinkButtonConfig(button_text=button_text):
                hints.append(f'AVAILABLE ACTION: You can offer the user: "{button_text}"')
            case MeetingScheduleConfig():
                hints.append("AVAILABLE ACTION: You can offer to schedule a meeting with the user.")
            case LeadCollectionConfig():
                hints.append(
                    "AVAILABLE ACTION: You can offer to take the user's contact details "
                    "so the team can follow up."
                )
    return "\n".join(hints)


def lead_form_due(
    triggers: Sequence[Trigger],
    message_count: int,
    last_user_message: str | None,
) -> bool:
    """Whether the first lead-collection logic says the form should be shown now."""
    lead = next((t for t in triggers if t.feature_type == FeatureType.LEAD_COLLECTION), None)
    if lead is None:
        return False

    match lead.kind:
        case TriggerKind.ALWAYS:
            return True
        case TriggerKind.MESSAGE_COUNT:
            return message_count >= lead.message_count
        case TriggerKind.KEYWORD:
            return last_user_message is not None and lead.matches(last_user_message)
        case _:
            return False
