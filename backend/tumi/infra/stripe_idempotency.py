from __future__ import annotations

import hashlib
import json
from typing import Any


def _stable_extra_value(value: Any) -> str:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def make_stripe_idempotency_key(
    purpose: str,
    *,
    payment_intent: str | None = None,
    registration_id: str | None = None,
    event_id: str | None = None,
    extra: dict | None = None,
) -> str:
    """Build a deterministic idempotency key for a Stripe mutation.

    Webhooks are redelivered, so the refund issued while moving a
    registration must collapse to a single Stripe request. Identical inputs
    always give the same key.

    Format: ``<prefix8>-<sha256hex32>``. The prefix is the first 8 characters
    of *purpose* with underscores turned into hyphens so keys stay readable in
    the Stripe dashboard; the total length stays far below Stripe's
    255-character limit.
    """
    parts: list[str] = [purpose]
    if payment_intent is not None:
        parts.append(f"pi:{payment_intent}")
    if registration_id is not None:
        parts.append(f"r:{registration_id}")
    if event_id is not None:
        parts.append(f"e:{event_id}")
    if extra:
        for k in sorted(extra.keys()):
            parts.append(f"x:{k}:{_stable_extra_value(extra[k])}")

    raw = "|".join(parts)
    digest = hashlib.sha256(raw.encode()).hexdigest()[:32]
    prefix = purpose[:8].replace("_", "-").rstrip("-")
    return f"{prefix}-{digest}"
