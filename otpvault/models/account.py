"""Account model and otpauth URI codec for otpvault.

An :class:`Account` mirrors the ``otpauth://`` key URI used by authenticator
apps. Parsing is strict about structure (protocol, OTP type, separators) and
lenient about optional query parameters, which fall back to documented
defaults.
"""

from __future__ import annotations

import enum
import logging
import re
import string
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import unquote

logger = logging.getLogger(__name__)

PROTOCOL: str = "otpauth"
DEFAULT_DIGITS: int = 6
DEFAULT_PERIOD: int = 30
COUNTER_ABSENT: int = -1

U8_MAX: int = 0xFF
I64_MIN: int = -(2**63)
I64_MAX: int = 2**63 - 1

_UNRESERVED = frozenset((string.ascii_letters + string.digits).encode("ascii"))
_SIGNED_INT = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_INT = re.compile(r"\+?[0-9]+")


class AccountParseError(Exception):
    """Raised when an otpauth URI or one of its parts is malformed."""

    def __init__(self, reason: str, source: Optional[str] = None) -> None:
        self.reason = reason
        self.source = source
        message = f"malformed input: {reason}"
        if source is not None:
            message = f"{message}:\n{source}"
        super().__init__(message)


class HashAlgorithm(enum.Enum):
    """HMAC hash selectable through the ``algorithm`` query parameter."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    def __str__(self) -> str:
        return self.value

    @property
    def digest_size(self) -> int:
        return _DIGEST_SIZES[self]

    @classmethod
    def from_name(cls, name: str) -> "HashAlgorithm":
        """Return the algorithm called ``name``, falling back to SHA1."""

        return _ALGORITHMS_BY_NAME.get(name, cls.SHA1)


_DIGEST_SIZES = {
    HashAlgorithm.SHA1: 20,
    HashAlgorithm.SHA256: 32,
    HashAlgorithm.SHA512: 64,
}

_ALGORITHMS_BY_NAME = {
    "SHA1": HashAlgorithm.SHA1,
    "SHA256": HashAlgorithm.SHA256,
    "SHA512": HashAlgorithm.SHA512,
}


class OtpType(enum.Enum):
    HOTP = "hotp"
    TOTP = "totp"

    def __str__(self) -> str:
        return self.value


_OTP_TYPES_BY_NAME = {
    "hotp": OtpType.HOTP,
    "totp": OtpType.TOTP,
}


def percent_encode(value: str) -> str:
    """Escape every UTF-8 byte of ``value`` that is not an ASCII letter or digit."""

    return "".join(
        chr(byte) if byte in _UNRESERVED else f"%{byte:02X}"
        for byte in value.encode("utf-8")
    )


def percent_decode(value: str) -> str:
    """Decode ``%XX`` escapes as UTF-8, replacing invalid sequences."""

    return unquote(value, encoding="utf-8", errors="replace")


def _parse_int(value: str, default: int, minimum: int, maximum: int, *, signed: bool) -> int:
    pattern = _SIGNED_INT if signed else _UNSIGNED_INT
    if not pattern.fullmatch(value):
        return default
    number = int(value)
    if not minimum <= number <= maximum:
        return default
    return number


def decode_label(label: str) -> Tuple[str, str]:
    """Split an otpauth label into ``(issuer, account_name)``.

    The label is percent-decoded first. Without a colon the issuer is empty
    and the raw label is the account name; with one colon both halves are
    trimmed; more colons are ambiguous and rejected.
    """

    decoded = percent_decode(label)
    colons = decoded.count(":")
    if colons == 0:
        return "", label.strip()
    if colons == 1:
        issuer, account_name = decoded.split(":", 1)
        return issuer.strip(), account_name.strip()
    raise AccountParseError("invalid issuer field")


@dataclass
class Parameters:
    """Query-string half of an otpauth URI."""

    secret_key: str
    issuer: str
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA1
    code_digits: int = DEFAULT_DIGITS
    counter: int = COUNTER_ABSENT
    step_period: int = DEFAULT_PERIOD

    @classmethod
    def parse(cls, query: str) -> "Parameters":
        """Parse ``secret=...&issuer=...`` into :class:`Parameters`.

        Unknown keys are ignored. ``secret`` and ``issuer`` are required; the
        numeric fields fall back to their defaults when absent or unparsable.
        """

        secret_key = ""
        issuer = ""
        hash_algorithm = HashAlgorithm.SHA1
        code_digits = DEFAULT_DIGITS
        counter = COUNTER_ABSENT
        step_period = DEFAULT_PERIOD

        for item in query.split("&"):
            key, sep, value = item.partition("=")
            if not sep:
                raise AccountParseError("please check the query parameters")
            if key == "secret":
                secret_key = value
            elif key == "issuer":
                issuer = value
            elif key == "algorithm":
                hash_algorithm = HashAlgorithm.from_name(value)
            elif key == "digits":
                code_digits = _parse_int(value, DEFAULT_DIGITS, 0, U8_MAX, signed=False)
            elif key == "counter":
                counter = _parse_int(value, COUNTER_ABSENT, I64_MIN, I64_MAX, signed=True)
            elif key == "period":
                step_period = _parse_int(value, DEFAULT_PERIOD, 0, U8_MAX, signed=False)

        if not secret_key or not issuer:
            raise AccountParseError("required fields are empty")

        return cls(
            secret_key=secret_key,
            issuer=percent_decode(issuer),
            hash_algorithm=hash_algorithm,
            code_digits=code_digits,
            counter=counter,
            step_period=step_period,
        )

    def query_fields(self) -> List[Tuple[str, str]]:
        """Return the query parameters in canonical order, values rendered."""

        return [
            ("secret", self.secret_key),
            ("issuer", percent_encode(self.issuer)),
            ("algorithm", str(self.hash_algorithm)),
            ("digits", str(self.code_digits)),
            ("counter", str(self.counter)),
            ("period", str(self.step_period)),
        ]

    def __str__(self) -> str:
        return "&".join(f"{key}={value}" for key, value in self.query_fields())


@dataclass
class Account:
    """An OTP account as carried by an otpauth URI."""

    otp_type: OtpType
    label_issuer: str
    label_account_name: str
    parameters: Parameters
    protocol: str = PROTOCOL

    @classmethod
    def parse(cls, uri: str) -> "Account":
        """Parse an ``otpauth://`` URI.

        Raises :class:`AccountParseError` with the offending URI attached when
        any structural part is missing or wrong. No partially populated
        account is ever returned.
        """

        location, sep, query = uri.partition("?")
        if not sep:
            raise AccountParseError("missing uri parameters", uri)

        try:
            parameters = Parameters.parse(query)
        except AccountParseError as exc:
            logger.debug("Rejected otpauth query parameters: %s", exc.reason)
            raise AccountParseError(exc.reason, uri) from exc

        protocol, sep, remainder = location.partition("://")
        if not sep:
            raise AccountParseError("missing protocol", uri)
        if protocol != PROTOCOL:
            raise AccountParseError("wrong protocol", uri)

        type_name, sep, label = remainder.partition("/")
        if not sep:
            raise AccountParseError("missing otp type or label", uri)
        otp_type = _OTP_TYPES_BY_NAME.get(type_name)
        if otp_type is None:
            raise AccountParseError("wrong otp type", uri)

        if otp_type is OtpType.HOTP and parameters.counter == COUNTER_ABSENT:
            raise AccountParseError("missing hotp counter", uri)

        try:
            label_issuer, label_account_name = decode_label(label)
        except AccountParseError as exc:
            logger.debug("Rejected otpauth label: %s", exc.reason)
            raise AccountParseError(exc.reason, uri) from exc
        if not label_account_name:
            raise AccountParseError("missing account name", uri)

        return cls(
            otp_type=otp_type,
            label_issuer=label_issuer,
            label_account_name=label_account_name,
            parameters=parameters,
            protocol=protocol,
        )

    def update_secret_key(self, new_key: str) -> None:
        """Replace the secret key; the new key is not validated."""

        self.parameters.secret_key = new_key

    def to_uri(self) -> str:
        # Only the parameter matching the OTP type is emitted.
        inactive = "period" if self.otp_type is OtpType.HOTP else "counter"
        query = "&".join(
            f"{key}={value}"
            for key, value in self.parameters.query_fields()
            if key != inactive
        )
        label = f"{percent_encode(self.label_issuer)}:{self.label_account_name}"
        return f"{self.protocol}://{self.otp_type}/{label}?{query}"

    def __str__(self) -> str:
        return self.to_uri()
