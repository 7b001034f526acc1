"""
Identifier generation.
"""

import uuid


def new_entry_id() -> str:
    """
    Generate a globally unique entry id (UUID4, canonical lowercase form).

    Example:
        new_entry_id() -> "3f2b8c1e-..."
    """
    return str(uuid.uuid4())
