from knowbot.chatbot.config import (
    DEFAULT_DIRECTIVE,
    ChatbotCatalog,
    ChatbotConfig,
    load_chatbot_catalog,
)
from knowbot.chatbot.triggers import (
    FeatureType,
    LeadCollectionConfig,
    LinkButtonConfig,
    MeetingScheduleConfig,
    Trigger,
    TriggerKind,
    evaluate_triggers,
    lead_form_due,
    logic_hints,
    parse_trigger,
    parse_triggers,
)

__all__ = [
    "DEFAULT_DIRECTIVE",
    "ChatbotCatalog",
    "ChatbotConfig",
    "FeatureType",
    "LeadCollectionConfig",
    "LinkButtonConfig",
    "MeetingScheduleConfig",
    "Trigger",
    "TriggerKind",
    "evaluate_triggers",
    "lead_form_due",
    "load_chatbot_catalog",
    "logic_hints",
    "parse_trigger",
    "parse_triggers",
]
