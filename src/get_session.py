"""Telegram authorization used by ``app._connect``.

Runs only when the session file is missing or no longer authorized. The
method comes from ``LOGIN_METHOD`` (``qr`` by default, or ``phone``).
"""

from __future__ import annotations

import logging
import os
from getpass import getpass

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

QR_LOGIN_TIMEOUT = 120
LOGIN_METHODS = ("qr", "phone")


def login_method() -> str:
    method = (os.getenv("LOGIN_METHOD") or "qr").strip().lower()
    if method not in LOGIN_METHODS:
        LOGGER.warning("Unknown LOGIN_METHOD %r, using QR login", method)
        return "qr"
    return method


async def _login_with_qr(client: TelegramClient) -> None:
    qr = await client.qr_login()
    code = qrcode.QRCode(border=1)
    code.add_data(qr.url)
    code.make(fit=True)
    code.print_ascii(invert=True)
    LOGGER.info("Scan the QR code within %ss (Settings > Devices > Link Desktop Device)", QR_LOGIN_TIMEOUT)
    await qr.wait(timeout=QR_LOGIN_TIMEOUT)


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number: ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


async def authorize(client: TelegramClient) -> None:
    """Log in unless the session is already authorized."""

    if await client.is_user_authorized():
        return

    method = login_method()
    LOGGER.info("Session is not authorized, starting %s login", method)
    try:
        if method == "phone":
            await _login_with_phone(client)
        else:
            await _login_with_qr(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=os.getenv("2FA") or getpass("2FA password: "))
