"""
RateResolver -- rate reference plus as-of date to rate.

Looks up the time slices of a rate list through the repository and lets
``withholding_engines.rates`` pick the slice in effect.  A missing slice
resolves to zero, which both regimes treat as "nothing to withhold".
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from withholding_engines.rates import effective_amount
from withholding_kernel.logging_config import get_logger
from withholding_modules.withholding.repository import WithholdingRepository

logger = get_logger("modules.withholding.rates")

_ZERO = Decimal("0")


class RateResolver:
    """Resolves withholding rates from rate lists and pinned versions."""

    def __init__(self, repository: WithholdingRepository):
        self._repository = repository

    def resolve(self, rate_list_id: UUID, as_of: date) -> Decimal:
        """
        Rate of the version with the latest ``valid_from <= as_of``.

        Postconditions:
            - Returns ``Decimal("0")`` when the list has no version in
              effect on ``as_of``.
        """
        versions = self._repository.get_rate_list_versions(rate_list_id)
        rate = effective_amount((v.to_slice() for v in versions), as_of)
        logger.debug(
            "rate_resolved",
            extra={
                "rate_list_id": str(rate_list_id),
                "as_of": as_of.isoformat(),
                "rate": str(rate),
                "version_count": len(versions),
            },
        )
        return rate

    def resolve_version(self, version_id: UUID) -> Decimal:
        """Amount of one pinned version; zero when the version is absent."""
        version = self._repository.get_rate_list_version(version_id)
        if version is None or version.amount is None:
            logger.debug("rate_version_not_found", extra={"version_id": str(version_id)})
            return _ZERO
        return version.amount
