import pytest

from otpvault.io import file_utils
from otpvault.models.account import AccountParseError, OtpType

TOTP_URI = "otpauth://totp/ACMECo:john.doe@email.com?secret=HXDMVJECJJWSRB3HWIZR4IFUGFTMXBOZ&issuer=ACMECo"
HOTP_URI = (
    "otpauth://hotp/ACMECo:jane@email.com?secret=HXDMVJECJJWSRB3HWIZR4IFUGFTMXBOZ&issuer=ACMECo&counter=300"
)


def test_parse_plain_list_skips_blank_lines():
    accounts = file_utils.parse_plain_list([TOTP_URI, "", "   ", HOTP_URI])
    assert [account.otp_type for account in accounts] == [OtpType.TOTP, OtpType.HOTP]
    assert accounts[1].label_account_name == "jane@email.com"


def test_parse_plain_list_aborts_on_first_bad_line():
    with pytest.raises(AccountParseError, match="wrong protocol"):
        file_utils.parse_plain_list([TOTP_URI, "https://totp/a:b?secret=A&issuer=B", HOTP_URI])


def test_parse_encrypted_list_returns_iv():
    iv, accounts = file_utils.parse_encrypted_list(["otpvault data", "00112233445566778899aabb", TOTP_URI, HOTP_URI])
    assert iv == "00112233445566778899aabb"
    assert len(accounts) == 2


def test_parse_encrypted_list_without_accounts():
    iv, accounts = file_utils.parse_encrypted_list(["header", "iv"])
    assert iv == "iv"
    assert accounts == []


def test_parse_encrypted_list_requires_iv_line():
    with pytest.raises(AccountParseError, match="missing iv line"):
        file_utils.parse_encrypted_list(["header"])


def test_load_plain_file(tmp_path):
    path = tmp_path / "accounts.txt"
    path.write_text(f"{TOTP_URI}\n{HOTP_URI}\n", encoding="utf-8")
    accounts = file_utils.load_plain_file(path)
    assert [str(account) for account in accounts] == [
        "otpauth://totp/ACMECo:john.doe@email.com?secret=HXDMVJECJJWSRB3HWIZR4IFUGFTMXBOZ"
        "&issuer=ACMECo&algorithm=SHA1&digits=6&period=30",
        "otpauth://hotp/ACMECo:jane@email.com?secret=HXDMVJECJJWSRB3HWIZR4IFUGFTMXBOZ"
        "&issuer=ACMECo&algorithm=SHA1&digits=6&counter=300",
    ]


def test_load_data_file(tmp_path):
    path = tmp_path / "accounts.dat"
    path.write_text(f"header\r\nabcdef\r\n{HOTP_URI}\r\n", encoding="utf-8")
    iv, accounts = file_utils.load_data_file(str(path))
    assert iv == "abcdef"
    assert accounts[0].parameters.counter == 300


def test_load_data_file_rejects_bad_account(tmp_path):
    path = tmp_path / "accounts.dat"
    path.write_text("header\niv\notpauth://hotp/a:b?secret=A&issuer=B\n", encoding="utf-8")
    with pytest.raises(AccountParseError, match="missing hotp counter"):
        file_utils.load_data_file(path)


def test_read_lines_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        file_utils.read_lines(tmp_path / "missing.txt")
