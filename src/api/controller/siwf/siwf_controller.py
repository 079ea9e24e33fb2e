"""
Sign In With Farcaster controller.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from src.api.controller.siwf.dto.input_dto import NonceRequestDto, VerifyRequestDto, SignOutRequestDto
from src.api.controller.siwf.dto.output_dto import (
    NonceResponseDto, VerifyResponseDto, SignedInUserDto, SessionStatusResponseDto, SignOutResponseDto
)
from src.api.utils.cookies import set_session_cookie, clear_session_cookie, read_session_token
from src.core.dependencies import get_siwf_service, get_session_service
from src.core.exceptions.handler import ServiceError
from src.core.service.siwf.models.session import DeviceInfo
from src.core.service.siwf.session_service import UserSessionService
from src.core.service.siwf.siwf_service import SIWFService
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/siwf", tags=["Sign In With Farcaster"])


def _device_info(request: Request) -> DeviceInfo:
    return DeviceInfo(
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.client.host if request.client else None
    )


@router.post("/nonce", response_model=NonceResponseDto)
async def get_nonce(
    request: NonceRequestDto,
    siwf_service: SIWFService = Depends(get_siwf_service)
):
    """
    Issue a single-use nonce for a Farcaster ID.

    The nonce is valid for 15 minutes and is consumed by the next verify call
    for the same fid.
    """
    nonce = await siwf_service.request_nonce(request.fid)
    return NonceResponseDto(nonce=nonce)


@router.post("/verify", response_model=VerifyResponseDto)
async def verify_token(
    body: VerifyRequestDto,
    request: Request,
    response: Response,
    siwf_service: SIWFService = Depends(get_siwf_service)
):
    """
    Verify a Quick Auth token and sign the Farcaster user in.

    Creates the local user on first sign-in, opens a session and sets the
    session cookie.
    """
    result = await siwf_service.verify_and_sign_in(
        token=body.token,
        profile=body.user.to_claimed_profile(),
        device_info=_device_info(request)
    )

    set_session_cookie(response, result.session)

    return VerifyResponseDto(
        success=True,
        token=result.session.token,
        user=SignedInUserDto(
            id=result.user.id,
            fid=result.fid,
            name=result.user.name,
            image=result.user.image
        )
    )


@router.get("/session", response_model=SessionStatusResponseDto)
async def get_session_status(
    request: Request,
    session_service: UserSessionService = Depends(get_session_service)
):
    """Check the session carried by the cookie or bearer token."""
    token = read_session_token(request)
    if not token:
        return SessionStatusResponseDto(valid=False)

    try:
        session = await session_service.get_session(token)
    except ServiceError:
        return SessionStatusResponseDto(valid=False)

    return SessionStatusResponseDto(
        valid=True,
        user_id=session.user_id,
        fid=session.fid,
        expires_at=session.expires_at
    )


@router.post("/sign-out", response_model=SignOutResponseDto)
async def sign_out(
    request: Request,
    response: Response,
    body: Optional[SignOutRequestDto] = None,
    session_service: UserSessionService = Depends(get_session_service)
):
    """Invalidate the current session, or every session of its user."""
    token = read_session_token(request)
    invalidated = 0

    session = None
    if token:
        try:
            session = await session_service.get_session(token)
        except ServiceError:
            logger.info("Sign-out with inactive session")

    if session is not None:
        if body is not None and body.all_devices:
            invalidated = len(await session_service.invalidate_user_sessions(session.user_id, "Signed out everywhere"))
        else:
            await session_service.invalidate_session(session.token, "Signed out")
            invalidated = 1

    clear_session_cookie(response)
    logger.info("Signed out", extra={"invalidated_sessions": invalidated})

    return SignOutResponseDto(success=True, invalidated_sessions=invalidated)
