import logging

from fastapi import Depends, Header, HTTPException

from marketplace.db.supabase import get_supabase_client, first_row

logger = logging.getLogger(__name__)


async def get_user(authorization: str = Header(None), supabase=Depends(get_supabase_client)):
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    token = authorization.split(" ", 1)[1].strip()

    # Validate token + fetch user
    try:
        res = supabase.auth.get_user(token)
    except Exception as e:
        logger.warning(f"Token validation failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user = res.user if res else None
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    return user


async def get_profile(user=Depends(get_user), supabase=Depends(get_supabase_client)) -> dict:
    """Profile row of the authenticated user; role defaults to reader."""
    resp = supabase.table("profiles").select("*").eq("id", user.id).limit(1).execute()
    profile = first_row(resp) or {"id": user.id}
    profile.setdefault("user_role", "reader")
    if not profile.get("user_role"):
        profile["user_role"] = "reader"
    profile["email"] = getattr(user, "email", None)
    return profile


def require_roles(*roles: str):
    async def checker(profile: dict = Depends(get_profile)) -> dict:
        if profile.get("user_role") not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return profile

    return checker


require_admin = require_roles("admin")
require_moderator = require_roles("admin", "moderator")
require_writer = require_roles("writer", "admin")
