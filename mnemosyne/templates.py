from __future__ import annotations

from typing import Any

EVENT_TEMPLATES: dict[str, dict[str, Any]] = {
    "purchase": {
        "description": "Bought or acquired something",
        "common_entities": ["property", "vehicle", "pet"],
        "metadata_fields": ["cost", "location", "brand", "model"],
    },
    "illness": {
        "description": "Illness or a medical visit",
        "common_entities": ["pet", "person"],
        "metadata_fields": ["cost", "diagnosis", "hospital", "medication"],
    },
    "maintenance": {
        "description": "Upkeep or servicing",
        "common_entities": ["vehicle", "property"],
        "metadata_fields": ["cost", "service_type", "service_provider"],
    },
    "activity": {
        "description": "Everyday activity or interaction",
        "common_entities": ["pet", "person"],
        "metadata_fields": ["location", "duration"],
    },
    "milestone": {
        "description": "Significant milestone",
        "common_entities": ["person", "pet", "property"],
        "metadata_fields": ["significance"],
    },
}


def get_event_templates() -> dict[str, Any]:
    return {"event_templates": EVENT_TEMPLATES}
