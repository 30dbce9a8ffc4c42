from collections import Counter
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from seminar_backend.auth import jwt_handler
from seminar_backend.auth.otp import generate_otp
from seminar_backend.auth.passwords import hash_password, verify_password
from seminar_backend.core import config


def test_generate_otp_is_six_digits() -> None:
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_generate_otp_leading_digit_is_roughly_uniform() -> None:
    samples = 9000
    counts = Counter(generate_otp()[0] for _ in range(samples))

    assert set(counts) == set('123456789')
    for digit in '123456789':
        # Expected 1000 per digit; the bound is far outside normal variance.
        assert 700 < counts[digit] < 1300


def test_hash_password_round_trip() -> None:
    hashed = hash_password('secret123')

    assert hashed != 'secret123'
    assert verify_password('secret123', hashed)
    assert not verify_password('wrong', hashed)


def test_verify_password_handles_missing_or_malformed_hash() -> None:
    assert not verify_password('secret123', None)
    assert not verify_password('secret123', '')
    assert not verify_password('secret123', 'not-a-bcrypt-hash')


def test_hash_password_accepts_passwords_longer_than_bcrypt_limit() -> None:
    long_password = 'x' * 100

    assert verify_password(long_password, hash_password(long_password))


def test_access_token_carries_subject_and_lifetime() -> None:
    token = jwt_handler.create_access_token(subject='user-1')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'user-1'
    assert payload['exp'] - payload['iat'] == config.JWT_EXPIRES_MINUTES * 60


def test_decode_rejects_expired_token() -> None:
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {'sub': 'user-1', 'iat': past, 'exp': past + timedelta(minutes=1)},
        config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(jwt.ExpiredSignatureError):
        jwt_handler.decode_access_token(token)


def test_decode_rejects_foreign_signature() -> None:
    token = jwt.encode({'sub': 'user-1'}, 'some-other-secret', algorithm='HS256')

    with pytest.raises(jwt.InvalidTokenError):
        jwt_handler.decode_access_token(token)


def test_decode_requires_expiry_claim() -> None:
    token = jwt.encode({'sub': 'user-1'}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(jwt.MissingRequiredClaimError):
        jwt_handler.decode_access_token(token)


def test_token_subject_reads_sub_claim() -> None:
    issued_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = jwt_handler.create_access_token(subject='user-7', expires_minutes=30, issued_at=issued_at)

    assert jwt_handler.token_subject(token) == 'user-7'
