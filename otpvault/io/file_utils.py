"""Account list loading for otpvault.

Lists hold one otpauth URI per line. The data-file variant starts with a
header line and an IV line in front of the accounts; decrypting the payload
is the caller's business.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from otpvault.models.account import Account, AccountParseError

logger = logging.getLogger(__name__)

DATA_HEADER_LINES: int = 2
IV_LINE_INDEX: int = 1


def parse_plain_list(lines: Iterable[str]) -> List[Account]:
    """Parse every non-blank line as an account.

    The first malformed line aborts the whole load.
    """

    return [Account.parse(line.strip()) for line in lines if line.strip()]


def parse_encrypted_list(lines: Sequence[str]) -> Tuple[str, List[Account]]:
    """Return the IV and the accounts of a data-file listing."""

    if len(lines) <= IV_LINE_INDEX:
        raise AccountParseError("missing iv line")
    iv = lines[IV_LINE_INDEX].strip()
    return iv, parse_plain_list(lines[DATA_HEADER_LINES:])


def read_lines(path: Path | str) -> List[str]:
    """Read ``path`` as UTF-8 text lines without line terminators."""

    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(f"Account list {path} does not exist.")
    return source.read_text(encoding="utf-8").splitlines()


def load_plain_file(path: Path | str) -> List[Account]:
    accounts = parse_plain_list(read_lines(path))
    logger.debug("Loaded %d accounts from %s", len(accounts), path)
    return accounts


def load_data_file(path: Path | str) -> Tuple[str, List[Account]]:
    iv, accounts = parse_encrypted_list(read_lines(path))
    logger.debug("Loaded %d accounts from data file %s", len(accounts), path)
    return iv, accounts
