"""
Account creation and password recovery guarded by emailed one-time codes.

Registration:    register -> verify_otp -> user created (or expired/abandoned)
Password reset:  forgot_password -> verify_reset_otp -> reset_password

Nothing is written to the database until a code is verified. Pending state
lives in the two ``PendingStore`` instances.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any, NoReturn, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seminar_backend.auth import jwt_handler
from seminar_backend.auth.passwords import hash_password, verify_password
from seminar_backend.auth.pending_store import (
    KEY_BYTES,
    PendingRecord,
    PendingRecordNotFound,
    PendingStore,
    VerifyResult,
    VerifyStatus,
)
from seminar_backend.core import config
from seminar_backend.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    OtpVerificationError,
    ValidationError,
)
from seminar_backend.core.logging_config import get_otp_logger
from seminar_backend.models.ids import is_valid_id
from seminar_backend.models.user import ROLES, User
from seminar_backend.serializers import serialize_user
from seminar_backend.services import email_service
from seminar_backend.services.outbox import Outbox

logger = logging.getLogger(__name__)
otp_logger = get_otp_logger()

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

FORGOT_PASSWORD_MESSAGE = 'If an account exists for this email, a password reset code has been sent.'


@dataclass(frozen=True)
class RegistrationData:
    email: Optional[str]
    password: Optional[str]
    name: Optional[str]
    role: Optional[str]
    roll_number: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None
    specialization: Optional[str] = None


@dataclass(frozen=True)
class PendingRegistration:
    email: str
    hashed_password: str
    name: str
    role: str
    roll_number: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None
    specialization: Optional[str] = None


@dataclass(frozen=True)
class PasswordResetRequest:
    user_id: str
    email: str
    name: str


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def validate_password(password: Optional[str]) -> None:
    if not password or len(password) < config.PASSWORD_MIN_LENGTH:
        raise ValidationError(f'Password must be at least {config.PASSWORD_MIN_LENGTH} characters long')


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email).first()


def _expires_in_label() -> str:
    return f'{config.OTP_TTL_MINUTES} minutes'


def _raise_for_failed_verification(result: VerifyResult, expired_message: str, exhausted_message: str) -> None:
    if result.status is VerifyStatus.EXPIRED:
        raise OtpVerificationError(expired_message)
    if result.status is VerifyStatus.MAX_ATTEMPTS_EXCEEDED:
        raise OtpVerificationError(exhausted_message, remaining_attempts=0)
    if result.status is VerifyStatus.INVALID:
        remaining = result.remaining_attempts or 0
        raise OtpVerificationError(f'Invalid OTP. {remaining} attempt(s) remaining.', remaining_attempts=remaining)


class AccountVerificationService:
    def __init__(
        self,
        db: Session,
        registrations: PendingStore,
        resets: PendingStore,
        outbox: Outbox,
    ):
        self.db = db
        self.registrations = registrations
        self.resets = resets
        self.outbox = outbox

    # Registration

    def register(self, data: RegistrationData) -> tuple[int, dict[str, Any]]:
        """Start a registration. Returns ``(status_code, body)``."""
        if not data.email or not data.password or not data.name or not data.role:
            raise ValidationError('Missing required fields: email, password, name, role')

        email = normalize_email(data.email)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError('Invalid email format')
        validate_password(data.password)
        if data.role not in ROLES:
            raise ValidationError('Invalid role. Must be student, teacher, or admin')

        if find_user_by_email(self.db, email) is not None:
            raise ConflictError('User already exists')

        pending = self.registrations.find_by_subject(email)
        if pending is not None:
            raise ConflictError(
                'Registration pending. Enter the code sent to your email or request a new one.',
                userId=pending.key,
                email=email,
                requiresVerification=True,
            )

        payload = PendingRegistration(
            email=email,
            hashed_password=hash_password(data.password),
            name=data.name.strip(),
            role=data.role,
            roll_number=data.roll_number,
            department=data.department,
            year=data.year,
            specialization=data.specialization,
        )

        if data.role in config.VERIFICATION_EXEMPT_ROLES:
            user = self._create_user(payload)
            self.outbox.enqueue(email_service.welcome_email(user.email, user.name, user.role))
            logger.info('Registered %s account %s without email verification', user.role, user.email)
            return 201, {
                'message': 'Registration successful',
                'token': jwt_handler.create_access_token(subject=user.id),
                'user': serialize_user(user),
                'requiresVerification': False,
            }

        record = self.registrations.create(payload, subject=email)
        self._send_registration_otp(record)
        logger.info('Pending registration created for %s (%s)', email, data.role)
        return 201, {
            'message': 'Registration successful. Please verify your email with the OTP sent to your email address.',
            'userId': record.key,
            'email': email,
            'requiresVerification': True,
        }

    def verify_otp(self, key: Optional[str], otp: Optional[str]) -> dict[str, Any]:
        if not key or not otp:
            raise ValidationError('User ID and OTP are required')

        result = self.registrations.verify(key, otp)
        if result.status is VerifyStatus.NOT_FOUND:
            self._raise_missing_registration(key)
        _raise_for_failed_verification(
            result,
            expired_message='OTP has expired. Please register again.',
            exhausted_message='Maximum verification attempts exceeded. Please register again.',
        )

        payload: PendingRegistration = result.record.payload
        if find_user_by_email(self.db, payload.email) is not None:
            self.registrations.delete(key)
            raise ConflictError('User already exists')

        user = self._create_user(payload)
        self.registrations.delete(key)
        token = jwt_handler.create_access_token(subject=user.id)
        self.outbox.enqueue(email_service.welcome_email(user.email, user.name, user.role))
        logger.info('Email verified, created %s account %s', user.role, user.email)
        return {
            'message': 'Email verified successfully',
            'token': token,
            'user': serialize_user(user),
        }

    def resend_otp(self, key: Optional[str]) -> dict[str, Any]:
        if not key:
            raise ValidationError('User ID is required')

        if self.registrations.get(key) is None:
            self._raise_missing_registration(key)
        try:
            record = self.registrations.regenerate_otp(key)
        except PendingRecordNotFound:
            self._raise_missing_registration(key)

        self._send_registration_otp(record)
        return {'message': 'New OTP sent to your email address', 'expiresIn': _expires_in_label()}

    # Login

    def login(self, email: Optional[str], password: Optional[str], role: Optional[str] = None) -> dict[str, Any]:
        if not email or not password:
            raise ValidationError('Email and password are required')

        user = find_user_by_email(self.db, normalize_email(email))
        if user is None or not verify_password(password, user.hashed_password):
            raise ValidationError('Invalid credentials')

        if role and user.role != role:
            logger.info('Role mismatch for %s: registered as %s, requested %s', user.email, user.role, role)
            raise AuthorizationError(
                f'Access denied. This email is registered as {user.role}, not {role}.',
                registeredRole=user.role,
            )

        return {
            'token': jwt_handler.create_access_token(subject=user.id),
            'user': serialize_user(user),
        }

    # Password reset

    def forgot_password(self, email: Optional[str]) -> dict[str, Any]:
        if not email:
            raise ValidationError('Email is required')

        normalized = normalize_email(email)
        user = find_user_by_email(self.db, normalized)
        if user is None:
            logger.info('Password reset requested for unknown email %s', normalized)
            # Unstored decoy, shaped like a real reset id.
            return {'message': FORGOT_PASSWORD_MESSAGE, 'resetId': secrets.token_hex(KEY_BYTES)}

        record = self.resets.create(
            PasswordResetRequest(user_id=user.id, email=user.email, name=user.name),
            subject=user.email,
        )
        self._send_reset_otp(record)
        return {'message': FORGOT_PASSWORD_MESSAGE, 'resetId': record.key}

    def verify_reset_otp(self, reset_id: Optional[str], otp: Optional[str]) -> dict[str, Any]:
        self._check_reset_code(reset_id, otp)
        return {'message': 'OTP verified. You can now set a new password.', 'verified': True}

    def reset_password(
        self,
        reset_id: Optional[str],
        otp: Optional[str],
        new_password: Optional[str],
    ) -> dict[str, Any]:
        validate_password(new_password)
        record = self._check_reset_code(reset_id, otp)
        request: PasswordResetRequest = record.payload

        user = self.db.get(User, request.user_id)
        if user is None:
            self.resets.delete(record.key)
            raise NotFoundError('User not found')

        user.hashed_password = hash_password(new_password)
        self.db.commit()
        self.resets.delete(record.key)
        self.outbox.enqueue(email_service.password_reset_confirmation_email(user.email, user.name))
        logger.info('Password reset completed for %s', user.email)
        return {'message': 'Password reset successful. You can now log in with your new password.'}

    def resend_reset_otp(self, reset_id: Optional[str]) -> dict[str, Any]:
        if not reset_id:
            raise ValidationError('Reset ID is required')

        if self.resets.get(reset_id) is None:
            raise NotFoundError('Reset session expired or invalid. Please request a new code.')
        try:
            record = self.resets.regenerate_otp(reset_id)
        except PendingRecordNotFound as exc:
            raise NotFoundError('Reset session expired or invalid. Please request a new code.') from exc

        self._send_reset_otp(record)
        return {'message': 'New reset code sent to your email address', 'expiresIn': _expires_in_label()}

    # Helpers

    def _create_user(self, payload: PendingRegistration) -> User:
        user = User(
            email=payload.email,
            hashed_password=payload.hashed_password,
            name=payload.name,
            role=payload.role,
            roll_number=payload.roll_number,
            department=payload.department,
            year=payload.year,
            specialization=payload.specialization,
            is_email_verified=True,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError('User with this email already exists') from exc
        self.db.refresh(user)
        return user

    def _raise_missing_registration(self, key: str) -> NoReturn:
        if is_valid_id(key):
            user = self.db.get(User, key)
            if user is not None and user.is_email_verified:
                raise ConflictError('Email already verified')
            raise NotFoundError('User not found')
        raise ValidationError('Verification session expired. Please register again.')

    def _check_reset_code(self, reset_id: Optional[str], otp: Optional[str]) -> PendingRecord:
        if not reset_id or not otp:
            raise ValidationError('Reset ID and OTP are required')

        result = self.resets.verify(reset_id, otp)
        if result.status is VerifyStatus.NOT_FOUND:
            raise ValidationError('Reset session expired or invalid. Please request a new code.')
        _raise_for_failed_verification(
            result,
            expired_message='OTP has expired. Please request a new one.',
            exhausted_message='Maximum verification attempts exceeded. Please request a new code.',
        )
        return result.record

    def _send_registration_otp(self, record: PendingRecord) -> None:
        payload: PendingRegistration = record.payload
        otp_logger.info(
            'Email verification OTP for %s (%s): %s, expires %s',
            payload.email, payload.role, record.otp, record.otp_expires_at.isoformat(),
        )
        self.outbox.enqueue(email_service.otp_email(payload.email, payload.name, record.otp))

    def _send_reset_otp(self, record: PendingRecord) -> None:
        request: PasswordResetRequest = record.payload
        otp_logger.info(
            'Password reset OTP for %s: %s, expires %s',
            request.email, record.otp, record.otp_expires_at.isoformat(),
        )
        self.outbox.enqueue(email_service.password_reset_otp_email(request.email, request.name, record.otp))
