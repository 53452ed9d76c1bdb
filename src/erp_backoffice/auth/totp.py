"""TOTP second factor and QR provisioning images."""

import asyncio
import hashlib
from pathlib import Path

import pyotp
import qrcode

DIGITS = 6
INTERVAL = 30


def new_secret() -> str:
    return pyotp.random_base32()


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL, digest=hashlib.sha1)


def provisioning_url(secret: str, account_name: str, issuer: str) -> str:
    """Standard ``otpauth://totp/...`` URL understood by any authenticator."""
    return _totp(secret).provisioning_uri(name=account_name, issuer_name=issuer)


def current_code(secret: str) -> str:
    return _totp(secret).now()


def verify_code(secret: str | None, code: str, skew: int = 0) -> bool:
    if not secret or not code:
        return False
    return _totp(secret).verify(code, valid_window=skew)


class QRCodeWriter:
    """Renders provisioning URLs to PNG files under ``directory``."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    async def write(self, url: str, file_name: str) -> Path:
        return await asyncio.to_thread(self._write, url, file_name)

    def _write(self, url: str, file_name: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / file_name
        qrcode.make(url, box_size=8).save(str(path))
        return path
