"""
Shared route dependencies
"""

from fastapi import Header


async def get_current_user_id(
    x_user_id: int = Header(..., alias="X-User-Id", gt=0, description="Caller's user id"),
) -> int:
    """Authentication happens upstream; the gateway forwards the user id."""
    return x_user_id
