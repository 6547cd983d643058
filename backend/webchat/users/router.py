"""User REST API router.

Endpoints:
    GET  /api/users/online  - Snapshot of the Presence Table
    POST /api/users/setup   - Set display name / avatar URL (upsert by userId)
    GET  /api/user/{userId} - Read a user's public profile

These are thin request/response wrappers around the Identity Store and
the Session Coordinator; none of them broadcasts anything.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from webchat.chat.coordinator import get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


class OnlineUser(BaseModel):
    """A connection that has joined the room."""
    connectionId: str
    userId: str
    phone: str


class OnlineUsersResponse(BaseModel):
    users: List[OnlineUser]


class ProfileSetupRequest(BaseModel):
    """Request body for profile setup.

    The avatar must already be hosted; this endpoint only records its URL.
    """
    userId: Optional[str] = Field(default=None, description="Stable user id")
    username: Optional[str] = Field(default=None, description="Display name")
    avatarUrl: Optional[str] = Field(default=None, description="Hosted avatar URL")


class ProfileSetupResponse(BaseModel):
    success: bool
    avatarUrl: Optional[str] = None


class ProfileResponse(BaseModel):
    username: Optional[str] = None
    avatarUrl: Optional[str] = None


@router.get("/users/online", response_model=OnlineUsersResponse)
async def get_online_users() -> OnlineUsersResponse:
    """Return every joined connection with its user id and phone."""
    users = get_coordinator().online_users()
    return OnlineUsersResponse(users=[OnlineUser(**u) for u in users])


@router.post("/users/setup", response_model=ProfileSetupResponse)
async def setup_profile(request: ProfileSetupRequest):
    """Create or update a user's display name and avatar.

    Returns:
        ProfileSetupResponse on success, a 400 JSON body when userId or
        username is missing, or a 500 JSON body if the Identity Store
        write fails.
    """
    if not request.userId or not request.username:
        return JSONResponse(
            {"success": False, "message": "Missing required fields: username or userId"},
            status_code=400,
        )

    identities = get_coordinator().identities
    try:
        identity = await asyncio.to_thread(
            identities.update_profile,
            request.userId,
            request.username,
            request.avatarUrl,
        )
    except Exception as e:
        logger.error(f"Error in /api/users/setup for {request.userId}: {e}")
        return JSONResponse(
            {"success": False, "message": "Server error"},
            status_code=500,
        )

    logger.info(f"Profile updated for: {request.userId}")
    return ProfileSetupResponse(success=True, avatarUrl=identity.avatarUrl)


@router.get("/user/{user_id}", response_model=ProfileResponse)
async def get_profile(user_id: str):
    """Read a user's display name and avatar.

    Returns:
        ProfileResponse, or a 404 JSON body if the user has never joined
        or set up a profile.
    """
    identity = await asyncio.to_thread(get_coordinator().identities.get, user_id)
    if identity is None:
        return JSONResponse({"message": "User not found"}, status_code=404)
    return ProfileResponse(username=identity.displayName, avatarUrl=identity.avatarUrl)
