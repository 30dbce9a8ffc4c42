from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from seminar_backend.auth.dependencies import get_current_user
from seminar_backend.auth.pending_store import PendingStore
from seminar_backend.auth.verification import AccountVerificationService, RegistrationData
from seminar_backend.database import get_db
from seminar_backend.models.user import User
from seminar_backend.routes.common import CamelModel
from seminar_backend.serializers import serialize_user
from seminar_backend.services.outbox import Outbox
from seminar_backend.state import get_outbox, get_registration_store, get_reset_store

router = APIRouter(tags=['auth'])


class RegisterRequest(CamelModel):
    email: str | None = None
    password: str | None = None
    name: str | None = None
    role: str | None = None
    roll_number: str | None = Field(default=None, alias='rollNumber')
    department: str | None = None
    year: int | None = None
    specialization: str | None = None

    @field_validator('role')
    @classmethod
    def normalize_role(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else value


class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None
    role: str | None = None


class VerifyOtpRequest(CamelModel):
    user_id: str | None = Field(default=None, alias='userId')
    otp: str | None = None

    @field_validator('otp', mode='before')
    @classmethod
    def coerce_otp(cls, value):
        # Clients sometimes send the code as a number.
        return str(value).strip() if value is not None else None


class ResendOtpRequest(CamelModel):
    user_id: str | None = Field(default=None, alias='userId')


class ForgotPasswordRequest(CamelModel):
    email: str | None = None


class VerifyResetOtpRequest(CamelModel):
    reset_id: str | None = Field(default=None, alias='resetId')
    otp: str | None = None

    @field_validator('otp', mode='before')
    @classmethod
    def coerce_otp(cls, value):
        return str(value).strip() if value is not None else None


class ResetPasswordRequest(VerifyResetOtpRequest):
    new_password: str | None = Field(default=None, alias='newPassword')


class ResendResetOtpRequest(CamelModel):
    reset_id: str | None = Field(default=None, alias='resetId')


def get_verification_service(
    db: Session = Depends(get_db),
    registrations: PendingStore = Depends(get_registration_store),
    resets: PendingStore = Depends(get_reset_store),
    outbox: Outbox = Depends(get_outbox),
) -> AccountVerificationService:
    return AccountVerificationService(db, registrations, resets, outbox)


@router.post('/register', status_code=201)
def register(data: RegisterRequest, service: AccountVerificationService = Depends(get_verification_service)):
    status_code, body = service.register(
        RegistrationData(
            email=data.email,
            password=data.password,
            name=data.name,
            role=data.role,
            roll_number=data.roll_number,
            department=data.department,
            year=data.year,
            specialization=data.specialization,
        )
    )
    return JSONResponse(status_code=status_code, content=body)


@router.post('/verify-otp')
def verify_otp(data: VerifyOtpRequest, service: AccountVerificationService = Depends(get_verification_service)):
    return service.verify_otp(data.user_id, data.otp)


@router.post('/resend-otp')
def resend_otp(data: ResendOtpRequest, service: AccountVerificationService = Depends(get_verification_service)):
    return service.resend_otp(data.user_id)


@router.post('/login')
def login(data: LoginRequest, service: AccountVerificationService = Depends(get_verification_service)):
    return service.login(data.email, data.password, data.role)


@router.post('/forgot-password')
def forgot_password(
    data: ForgotPasswordRequest,
    service: AccountVerificationService = Depends(get_verification_service),
):
    return service.forgot_password(data.email)


@router.post('/verify-reset-otp')
def verify_reset_otp(
    data: VerifyResetOtpRequest,
    service: AccountVerificationService = Depends(get_verification_service),
):
    return service.verify_reset_otp(data.reset_id, data.otp)


@router.post('/reset-password')
def reset_password(
    data: ResetPasswordRequest,
    service: AccountVerificationService = Depends(get_verification_service),
):
    return service.reset_password(data.reset_id, data.otp, data.new_password)


@router.post('/resend-reset-otp')
def resend_reset_otp(
    data: ResendResetOtpRequest,
    service: AccountVerificationService = Depends(get_verification_service),
):
    return service.resend_reset_otp(data.reset_id)


@router.get('/me')
def me(current_user: User = Depends(get_current_user)):
    return serialize_user(current_user)
