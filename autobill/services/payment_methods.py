from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from ..schemas.schemas import PaymentMethod

logger = logging.getLogger(__name__)


def _normalize(text: str) -> str:
    return " ".join(text.casefold().split())


def select_payment_method(methods: Sequence[PaymentMethod], labels: Sequence[str]) -> Optional[PaymentMethod]:
    """Pick the direct-debit method among ``methods``.

    Labels are tried in order, exact matches first, then substring matches.
    Without any match the first active method is returned, or ``None``.
    """
    active = [method for method in methods if method.is_active]
    wanted = [_normalize(label) for label in labels if label and label.strip()]
    for label in wanted:
        for method in active:
            if _normalize(method.label) == label:
                return method
    for label in wanted:
        for method in active:
            if label in _normalize(method.label):
                return method
    return active[0] if active else None


class PaymentMethodResolver:
    """Looks the direct-debit payment method up once and remembers it for the run."""

    def __init__(self, billing: Any, labels: List[str]) -> None:
        self._billing = billing
        self._labels = labels
        self._resolved: Optional[PaymentMethod] = None

    def resolve(self) -> Optional[PaymentMethod]:
        if self._resolved is not None:
            return self._resolved
        methods = self._billing.search_payment_methods()
        method = select_payment_method(methods, self._labels)
        if method is None:
            logger.warning("No active Sellsy payment method found (looked for %s)", ", ".join(self._labels))
            return None
        if not any(_normalize(label) in _normalize(method.label) for label in self._labels if label.strip()):
            logger.warning(
                "No payment method matches %s; falling back to '%s' (id=%s)",
                ", ".join(self._labels),
                method.label,
                method.id,
            )
        self._resolved = method
        return method
