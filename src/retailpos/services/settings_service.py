from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from retailpos.domain.errors import ApiError, ValidationError
from retailpos.domain.money import ZERO
from retailpos.repositories.payloads import parse_rate

log = logging.getLogger("retailpos.settings")


class SettingsService:
    def __init__(self, repo):
        self.repo = repo
        self._tax_rate: Optional[Decimal] = None

    def _fetch_tax_rate(self) -> Decimal:
        # a zero default_tax_rate defers to the system-wide rate
        tax = self.repo.get_tax_settings() or {}
        value = tax.get("default_tax_rate")
        if value not in (None, ""):
            rate = parse_rate(value, "default_tax_rate")
            if rate != 0:
                return rate

        system = self.repo.get_system_settings() or {}
        value = system.get("tax_rate")
        if value not in (None, ""):
            return parse_rate(value, "tax_rate")
        return ZERO

    def get_tax_rate(self) -> Decimal:
        try:
            rate = self._fetch_tax_rate()
        except (ApiError, ValidationError) as e:
            if self._tax_rate is None:
                raise
            log.warning("tax_rate_fallback_cached rate=%s error=%s", self._tax_rate, e)
            return self._tax_rate
        self._tax_rate = rate
        return rate

    def invalidate(self) -> None:
        self._tax_rate = None
