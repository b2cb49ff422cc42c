# sahayak/routers/auth_router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..application.services.otp_service import OTPService, AuthResult
from ..deps import get_otp_service
from ..exceptions import InvalidToken, create_success_response
from ..schemas.auth import SendOTPRequest, VerifyOTPRequest, RegisterRequest, RefreshRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

bearer_scheme = HTTPBearer(auto_error=False)


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if not credentials or not credentials.credentials:
        raise InvalidToken("Authentication required")
    return credentials.credentials


def _auth_payload(result: AuthResult) -> dict:
    return {
        "token": result.token,
        "refreshToken": result.refresh_token,
        "artisanId": result.artisan_id,
        "expiresIn": result.expires_in,
        "message": result.message,
    }


@router.post("/send-otp")
def send_otp(body: SendOTPRequest, otp_service: OTPService = Depends(get_otp_service)):
    challenge = otp_service.send_otp(body.phone, body.purpose)
    return create_success_response({
        "sessionId": challenge.session_id,
        "expiresAt": challenge.expires_at,
        "message": "OTP sent successfully",
    })


@router.post("/verify-otp")
def verify_otp(body: VerifyOTPRequest, otp_service: OTPService = Depends(get_otp_service)):
    result = otp_service.verify_otp(body.session_id, body.otp)
    if result.requires_registration:
        return {
            "success": True,
            "requiresRegistration": True,
            "message": result.message,
        }
    return create_success_response(_auth_payload(result))


@router.post("/register", status_code=201)
def register(body: RegisterRequest, otp_service: OTPService = Depends(get_otp_service)):
    result = otp_service.register(body.session_id, body.name, body.preferred_language, body.district)
    return create_success_response(_auth_payload(result))


@router.post("/refresh")
def refresh(body: RefreshRequest, otp_service: OTPService = Depends(get_otp_service)):
    tokens = otp_service.refresh(body.refresh_token)
    return create_success_response({
        "token": tokens.access_token,
        "refreshToken": tokens.refresh_token,
        "expiresIn": tokens.expires_in,
    })


@router.post("/logout")
def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    otp_service: OTPService = Depends(get_otp_service),
):
    revoked = otp_service.logout(_bearer_token(credentials))
    return create_success_response({"loggedOut": revoked})


@router.get("/me")
def me(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    otp_service: OTPService = Depends(get_otp_service),
):
    claims = otp_service.authenticate(_bearer_token(credentials))
    return create_success_response({
        "artisanId": claims["sub"],
        "phone": claims.get("phone"),
        "role": claims["role"],
        "permissions": claims.get("permissions", []),
    })
