"""
Utility functions for ID generation
"""
import random
import string
from typing import Container, Optional

_rng = random.SystemRandom()


def generate_client_id(length: int = 9) -> str:
    """Generate a random connection ID"""
    alphabet = string.ascii_lowercase + string.digits
    return "conn_" + "".join(_rng.choice(alphabet) for _ in range(length))


def generate_user_id(length: int = 13) -> str:
    """Generate the per-connection user ID used for question history"""
    alphabet = string.ascii_lowercase + string.digits
    return "".join(_rng.choice(alphabet) for _ in range(length))


def generate_room_id(length: int = 6, taken: Optional[Container[str]] = None) -> str:
    """Generate a short uppercase room code, avoiding codes already in `taken`"""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        room_id = "".join(_rng.choice(alphabet) for _ in range(length))
        if taken is None or room_id not in taken:
            return room_id
