"""One-time password utilities for otpvault.

The engine functions implement HOTP (RFC 4226) and TOTP (RFC 6238) over
hex-encoded keys. The account helpers below them feed parsed
:class:`~otpvault.models.account.Account` objects into the engine. Time is
always supplied by the caller.
"""

from __future__ import annotations

import logging
import struct
from typing import Optional, Tuple

import pyotp
from pyotp.utils import strings_equal

from otpvault.crypto import hmac_utils
from otpvault.models.account import I64_MAX, Account, HashAlgorithm, OtpType

logger = logging.getLogger(__name__)

SECRET_LENGTH_DEFAULT: int = 32
VALID_WINDOW_DEFAULT: int = 1

_COUNTER = struct.Struct(">q")


def _truncating_divmod(dividend: int, divisor: int) -> Tuple[int, int]:
    # Rounds toward zero, unlike Python's floor division.
    quotient = abs(dividend) // abs(divisor)
    if (dividend < 0) != (divisor < 0):
        quotient = -quotient
    return quotient, dividend - quotient * divisor


def compute_hotp(key: str, counter: int, digits: int, algorithm: HashAlgorithm) -> str:
    """Compute an HOTP code.

    ``counter`` is packed as a big-endian signed 64-bit integer and HMACed
    with the hex-encoded ``key``. Dynamic truncation picks four bytes at the
    offset given by the low nibble of the last digest byte, masks the top bit
    and reduces the 31-bit value modulo ``10 ** digits``. The result is
    zero-padded to ``digits`` characters.
    """

    message = _COUNTER.pack(counter).hex()
    mac = bytes.fromhex(hmac_utils.compute_hmac(key, message, algorithm))

    offset = mac[-1] & 0x0F
    if len(mac) < offset + 4:
        raise RuntimeError(f"{algorithm} digest too short for dynamic truncation")
    truncated = int.from_bytes(mac[offset : offset + 4], "big") & 0x7FFFFFFF

    code = truncated % (10**digits)
    return str(code).zfill(digits)


def compute_totp(key: str, unix_time: int, digits: int, algorithm: HashAlgorithm, step_period: int) -> str:
    """Compute a TOTP code for the time step containing ``unix_time``."""

    timestep, _ = _truncating_divmod(unix_time, step_period)
    return compute_hotp(key, timestep, digits, algorithm)


def compute_otp_lifetime(unix_time: int, step_period: int) -> int:
    """Return the seconds left in the step window containing ``unix_time``."""

    _, elapsed = _truncating_divmod(unix_time, step_period)
    return step_period - elapsed


def secret_to_hex(secret: str) -> str:
    """Hex-encode a Base32 account secret; padding and case are optional."""

    return pyotp.OTP(secret).byte_secret().hex()


def generate_secret(length: int = SECRET_LENGTH_DEFAULT) -> str:
    """Return a random Base32 secret compatible with authenticator apps."""

    return pyotp.random_base32(length=length)


def rotate_secret(account: Account, length: int = SECRET_LENGTH_DEFAULT) -> str:
    """Install a freshly generated secret on ``account`` and return it."""

    secret = generate_secret(length)
    account.update_secret_key(secret)
    logger.debug("Rotated secret for account %r", account.label_account_name)
    return secret


def _step_period(account: Account) -> int:
    period = account.parameters.step_period
    if period <= 0:
        raise ValueError("TOTP accounts need a positive period.")
    return period


def _require_time(unix_time: Optional[int]) -> int:
    if unix_time is None:
        raise ValueError("TOTP accounts need a unix_time.")
    return unix_time


def generate_code(account: Account, unix_time: Optional[int] = None) -> str:
    """Compute the current code of ``account``.

    TOTP accounts require ``unix_time``; HOTP accounts use their stored
    counter and ignore it.
    """

    params = account.parameters
    key = secret_to_hex(params.secret_key)
    if account.otp_type is OtpType.HOTP:
        return compute_hotp(key, params.counter, params.code_digits, params.hash_algorithm)
    return compute_totp(
        key,
        _require_time(unix_time),
        params.code_digits,
        params.hash_algorithm,
        _step_period(account),
    )


def remaining_seconds(account: Account, unix_time: int) -> int:
    """Seconds until the TOTP code of ``account`` changes."""

    if account.otp_type is not OtpType.TOTP:
        raise ValueError("Only TOTP accounts have a code lifetime.")
    return compute_otp_lifetime(unix_time, _step_period(account))


def verify_code(
    account: Account,
    otp_code: str,
    unix_time: Optional[int] = None,
    valid_window: int = VALID_WINDOW_DEFAULT,
) -> bool:
    """Validate a user-supplied code against ``account``.

    For TOTP, ``unix_time`` is required and ``valid_window`` accepts that many
    steps before and after the current one to absorb clock skew. For HOTP it
    is the look-ahead past the stored counter, stopping at the largest
    counter value. The code itself is never logged.
    """

    code = otp_code.strip()
    if not code.isdigit():
        return False

    params = account.parameters
    key = secret_to_hex(params.secret_key)
    if account.otp_type is OtpType.HOTP:
        look_ahead = min(valid_window, I64_MAX - params.counter)
        candidates = (
            compute_hotp(key, params.counter + step, params.code_digits, params.hash_algorithm)
            for step in range(look_ahead + 1)
        )
    else:
        now = _require_time(unix_time)
        period = _step_period(account)
        candidates = (
            compute_totp(key, now + step * period, params.code_digits, params.hash_algorithm, period)
            for step in range(-valid_window, valid_window + 1)
        )
    return any(strings_equal(code, candidate) for candidate in candidates)
