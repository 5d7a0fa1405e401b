"""Prompt construction for fill-value generation."""

import json
import random
import time
from typing import Any, Dict, List, Sequence

from formfill.app.schemas import FormField

# Writing styles rotated between requests so repeated forms get varied data
PERSONAS = [
    "professional",
    "casual",
    "formal",
    "creative",
    "modern",
    "traditional",
]

SYSTEM_PROMPT = (
    "You fill in web forms with realistic data that suits each field's context. "
    "Answer with a single JSON object and nothing else. "
    "Give every field a specific value someone could plausibly type into it: "
    "ISO 8601 dates, properly formatted phone numbers, valid email addresses "
    "and complete postal addresses. "
    "Avoid stock placeholders such as \"John Doe\", \"test@example.com\" or "
    "\"123 Main St\"; draw names from many cultures and use real city names. "
    "Writing style: {persona}. Variation seed: {seed}"
)

USER_PROMPT = (
    "Fields to fill (id, name, label, placeholder, type):\n"
    "{fields}\n\n"
    "Match each value to the field's type and label. If a field already has a "
    "value, produce a different one.\n"
    "Return JSON shaped as "
    "{{\"<field id>\": {{\"value\": \"<value>\", \"reason\": \"<why it fits>\"}}}}."
)


def _field_payload(field: FormField) -> Dict[str, Any]:
    return field.model_dump(by_alias=True, exclude_none=True)


def build_messages(fields: Sequence[FormField]) -> List[Dict[str, str]]:
    """Build the chat messages for a batch of fields.

    The system message carries a random persona and variation seed, so the
    same fields produce different text on each call.
    """
    persona = random.choice(PERSONAS)
    seed = f"{int(time.time() * 1000)}-{random.randint(0, 999_999)}"
    payload = json.dumps([_field_payload(f) for f in fields], indent=2, ensure_ascii=False)

    return [
        {"role": "system", "content": SYSTEM_PROMPT.format(persona=persona, seed=seed)},
        {"role": "user", "content": USER_PROMPT.format(fields=payload)},
    ]
