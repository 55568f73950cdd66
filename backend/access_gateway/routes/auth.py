from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from access_gateway.auth import get_current_principal
from access_gateway.directory import PrincipalDirectory, get_directory
from access_gateway.login import LoginService
from access_gateway.policy import Principal
from access_gateway.rate_limit import lockout_tracker, rate_gate
from access_gateway.tokens import TokenService, get_token_service

router = APIRouter()

RESET_REQUESTED_MESSAGE = "If the email exists, a reset link will be sent."


def get_login_service(
    directory: PrincipalDirectory = Depends(get_directory),
    tokens: TokenService = Depends(get_token_service),
) -> LoginService:
    return LoginService(directory, tokens, rate_gate, lockout_tracker)


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login")
async def login(body: LoginRequest, service: LoginService = Depends(get_login_service)):
    result = await service.login(body.email, body.password)
    return result.to_dict()


class PasswordResetRequest(BaseModel):
    email: EmailStr


@router.post("/request-password-reset")
async def request_password_reset(body: PasswordResetRequest, service: LoginService = Depends(get_login_service)):
    # Delivery of the raw token is handled by the mail collaborator, never the response
    await service.request_password_reset(body.email)
    return {"message": RESET_REQUESTED_MESSAGE}


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, service: LoginService = Depends(get_login_service)):
    await service.reset_password(body.token, body.new_password)
    return {"message": "Password reset successful"}


@router.get("/me")
async def me(principal: Principal = Depends(get_current_principal)):
    return {
        "email": principal.subject,
        "roles": sorted(principal.roles),
    }
