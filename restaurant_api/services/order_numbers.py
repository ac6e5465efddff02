from __future__ import annotations

import logging
import random
import re
from datetime import datetime, timezone
from typing import Callable

from restaurant_api.core.config import ORDER_NUMBER_MAX_ATTEMPTS
from restaurant_api.core.errors import OrderNumberExhaustedError

logger = logging.getLogger(__name__)

ORDER_NUMBER_PATTERN = re.compile(r"^ORD-\d{8}-\d{5}$")
MAX_DAILY_SEQUENCE = 99999

_system_random = random.SystemRandom()


def format_order_number(moment: datetime, sequence: int) -> str:
    return f"ORD-{moment:%Y%m%d}-{sequence:05d}"


def is_valid_order_number(value: str | None) -> bool:
    return bool(value) and ORDER_NUMBER_PATTERN.match(value) is not None


def generate_order_number(
    exists: Callable[[str], bool],
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
    max_attempts: int | None = None,
) -> str:
    """Pick a random ``ORD-YYYYMMDD-NNNNN`` not yet taken according to ``exists``.

    Gives up with ``OrderNumberExhaustedError`` after ``max_attempts`` collisions.
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or _system_random
    attempts = max_attempts or ORDER_NUMBER_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        candidate = format_order_number(now, rng.randint(0, MAX_DAILY_SEQUENCE))
        if not exists(candidate):
            if attempt > 1:
                logger.info("order number collision resolved attempts=%s", attempt)
            return candidate

    logger.warning("order number generation exhausted attempts=%s day=%s", attempts, f"{now:%Y%m%d}")
    raise OrderNumberExhaustedError("Could not allocate a unique order number, try again")
