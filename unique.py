"""Unique test data so repeated runs don't collide with resources created earlier.

Strategy: a compact base36 timestamp plus a short random tail.
"""

import random
import string
import time
from typing import Callable, Optional

BASE36_DIGITS = string.digits + string.ascii_lowercase


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError(f"Cannot encode negative number {number} in base36")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def timestamp_token(clock: Callable[[], float] = time.time) -> str:
    """Base36 of the current time in milliseconds."""
    return to_base36(int(clock() * 1000))


def unique_suffix(length: int = 4, clock: Callable[[], float] = time.time, rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    random_part = "".join(rng.choice(BASE36_DIGITS) for _ in range(length))
    return f"{timestamp_token(clock)[-5:]}{random_part}"


def unique_brand(base: str = "marcax", **kwargs) -> str:
    return f"{base}-{unique_suffix(**kwargs)}"


def unique_variety(base: str = "p 8660", **kwargs) -> str:
    return f"{base}-{unique_suffix(3, **kwargs)}"


def unique_destination(base: str = "pienso", **kwargs) -> str:
    return f"{base}-{unique_suffix(2, **kwargs)}"


def generate_crop_data(**kwargs) -> dict:
    """Full set of answers for the create-crop flow."""
    return {
        # the bot validates the crop name against its catalogue, keep it fixed
        "name": "maíz",
        "variety": unique_variety(**kwargs),
        "destination": unique_destination(**kwargs),
        "brand": unique_brand(**kwargs),
    }


def unique_name(base: str, clock: Callable[[], float] = time.time) -> str:
    """``"<base> <epoch seconds>"``, the naming scheme used for created resources."""
    return f"{base} {int(clock())}"
