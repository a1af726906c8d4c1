"""
sessiontab/services/rate_service.py

Purpose: Per-role session prices

- Upsert price for (group, role)
- Unset prices read as 0.0
"""

import math
from typing import Dict

from sessiontab.core.exceptions import ValidationError
from sessiontab.core.logging import LogContext, get_logger
from sessiontab.db.repository import Repository
from sessiontab.models.membership import Role

logger = get_logger(__name__)


class RateTable:
    def __init__(self, repository: Repository):
        self.repository = repository

    async def set_rate(self, group_id: int, role: Role, price: float) -> float:
        """
        Sets the price per session for a role in a group.

        Raises:
            ValidationError: If price is negative or not a finite number
        """
        try:
            price = float(price)
        except (TypeError, ValueError) as e:
            raise ValidationError("Rate must be a number", details={"price": str(price)}) from e

        if not math.isfinite(price) or price < 0:
            raise ValidationError("Rate must be zero or positive", details={"price": price})

        with LogContext(logger, group_id=group_id) as log:
            await self.repository.set_rate(group_id, role, price)
            log.info(f"Rate for {role.value} set to {price}")

        return price

    async def get_rate(self, group_id: int, role: Role) -> float:
        """Price per session; 0.0 when the rate was never set."""
        rate = await self.repository.get_rate(group_id, role)
        return rate if rate is not None else 0.0

    async def all_rates(self, group_id: int) -> Dict[Role, float]:
        return await self.repository.list_rates(group_id)
