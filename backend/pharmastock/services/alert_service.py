# Overview: Read-only stock alerts (low stock, expiring soon, expired) derived from one ledger snapshot.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..models import Medication
from ..time_utils import today as current_day, to_iso_date


@dataclass(frozen=True)
class AlertSnapshot:
    low_stock: list[Medication]
    expiring_soon: list[Medication]
    expired: list[Medication]
    today: date
    expiring_until: date

    def summary(self) -> dict:
        return {
            "low_stock_count": len(self.low_stock),
            "expiring_soon_count": len(self.expiring_soon),
            "expired_count": len(self.expired),
        }

    def to_dict(self) -> dict:
        return {
            "low_stock": [m.to_dict() for m in self.low_stock],
            "expiring_soon": [m.to_dict() for m in self.expiring_soon],
            "expired": [m.to_dict() for m in self.expired],
            "summary": self.summary(),
            "today": to_iso_date(self.today),
            "expiring_until": to_iso_date(self.expiring_until),
        }


def get_alerts(*, pharmacy_id: int, today: date | None = None, warning_days: int | None = None) -> AlertSnapshot:
    """
    Classify a pharmacy's medications from a single read.

    - low stock:      quantity <= low_stock_threshold
    - expiring soon:  today <= expiry_date <= today + warning_days (sorted by expiry, then name)
    - expired:        expiry_date < today

    A medication can be both low stock and expiring/expired.
    """
    if today is None:
        today = current_day()
    if warning_days is None:
        warning_days = current_app.config.get("EXPIRY_WARNING_DAYS", 30)
    horizon = today + timedelta(days=warning_days)

    medications = (
        db.session.query(Medication)
        .filter(Medication.pharmacy_id == pharmacy_id)
        .order_by(Medication.name.asc(), Medication.id.asc())
        .all()
    )

    low_stock = [m for m in medications if m.quantity <= m.low_stock_threshold]
    expiring_soon = sorted(
        (m for m in medications if today <= m.expiry_date <= horizon),
        key=lambda m: (m.expiry_date, m.name, m.id),
    )
    expired = [m for m in medications if m.expiry_date < today]

    return AlertSnapshot(
        low_stock=low_stock,
        expiring_soon=expiring_soon,
        expired=expired,
        today=today,
        expiring_until=horizon,
    )
