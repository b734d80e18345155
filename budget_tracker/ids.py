"""Unique keys for every stored record"""

import uuid


def generate_id() -> str:
    """Random UUID4 string"""
    return str(uuid.uuid4())
