import secrets

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp() -> str:
    """Six decimal digits from the OS CSPRNG, never zero-padded."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))
