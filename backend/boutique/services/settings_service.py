# Overview: Store profile settings (single row).

from __future__ import annotations

from ..extensions import db
from ..models import StoreSettings
from ..validation import ModelValidationPolicy, coerce_int, validate_payload
from ..errors import ValidationError


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"store_name", "address", "phone", "cnpj", "footer_message", "exchange_days"}),
)

MAX_EXCHANGE_DAYS = 365


def get_settings() -> StoreSettings:
    """Return the settings row, creating it with defaults on first use."""
    settings = db.session.get(StoreSettings, 1)
    if settings is None:
        settings = StoreSettings(id=1)
        db.session.add(settings)
        db.session.commit()
    return settings


def update_settings(payload: dict, actor=None) -> StoreSettings:
    patch = validate_payload(model=StoreSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
    if "exchange_days" in patch:
        days = coerce_int("exchange_days", patch["exchange_days"])
        if not 0 <= days <= MAX_EXCHANGE_DAYS:
            raise ValidationError(f"exchange_days must be between 0 and {MAX_EXCHANGE_DAYS}")

    settings = get_settings()
    for key, value in patch.items():
        setattr(settings, key, value)
    settings.updated_by_user_id = actor.id if actor else None
    db.session.commit()
    return settings
