"""
User API endpoints.

Routes:
- POST /api/signup - Create a user and set the signup cookie
- GET /api/me - Current signed-in user
- GET /api/profile/{username} - Public profile with recent sessions

Dependencies: market_map.application.services.user_service, market_map.models
System role: Signup and profile HTTP API
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from market_map.api.deps import get_settings_dependency, get_user_service
from market_map.application.services.user_service import UserService
from market_map.configs import Settings
from market_map.core.exceptions import UserNotFoundError, ValidationError
from market_map.models.user import ProfileResponse, SignupRequest, UsernameResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/signup", response_model=UsernameResponse)
async def signup(
    payload: SignupRequest,
    response: Response,
    settings: Settings = Depends(get_settings_dependency),
    user_service: UserService = Depends(get_user_service),
) -> UsernameResponse:
    """
    Create a user and remember them with a cookie.

    Raises:
        HTTPException(400): No usable username could be derived
    """
    try:
        user = await user_service.signup(payload.username)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    research = settings.research
    response.set_cookie(
        key=research.cookie_name,
        value=user.username,
        max_age=research.cookie_max_age_seconds,
        httponly=True,
        samesite="lax",
        domain=research.cookie_domain,
        secure=research.cookie_secure or settings.is_production,
    )
    return UsernameResponse(username=user.username)


@router.get("/me", response_model=UsernameResponse)
async def me(
    request: Request,
    settings: Settings = Depends(get_settings_dependency),
    user_service: UserService = Depends(get_user_service),
) -> UsernameResponse:
    """
    Username stored in the signup cookie.

    Raises:
        HTTPException(401): No cookie, or the user no longer exists
    """
    user = await user_service.get_by_username(request.cookies.get(settings.research.cookie_name))
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return UsernameResponse(username=user.username)


@router.get("/profile/{username}", response_model=ProfileResponse)
async def profile(
    username: str,
    user_service: UserService = Depends(get_user_service),
) -> ProfileResponse:
    """
    Public profile of a user.

    Raises:
        HTTPException(404): User not found
    """
    try:
        return await user_service.profile(username)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
