import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Union, Optional


async def random_delay(base_delay: Union[int, float], randomness_percent: float = 0.0) -> None:
    """
    Wait for a random duration around the base delay with specified randomness.

    Args:
        base_delay: The base delay in seconds
        randomness_percent: Percentage of randomness (default: none, exact delay)

    Example:
        await random_delay(30.0)  # Wait exactly 30 seconds
        await random_delay(2.0, 20.0)  # Wait between 1.6 and 2.4 seconds
    """
    if base_delay <= 0:
        return

    random_factor = 1 + random.uniform(-randomness_percent / 100, randomness_percent / 100)
    actual_delay = max(base_delay * random_factor, 0.001)

    await asyncio.sleep(actual_delay)


def truncate_content(content: str, max_length: int = 500) -> str:
    """Truncate long content for better error readability"""
    if len(content) <= max_length:
        return content
    return content[:max_length] + f"... [truncated, total {len(content)} characters]"


def now_ms() -> int:
    return int(time.time() * 1000)


def convert_date_to_timestamp(date_str: Optional[str]) -> Optional[int]:
    """Parse an ISO-8601 date or datetime into epoch milliseconds.

    Naive values are treated as UTC. Returns None when the value is empty
    or unparseable.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    try:
        dt = datetime.fromisoformat(date_str.strip().replace('Z', '+00:00'))
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
