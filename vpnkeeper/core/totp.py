# vpnkeeper/core/totp.py
from dataclasses import dataclass
from io import BytesIO

import pyotp
import qrcode
from qrcode.exceptions import DataOverflowError

from vpnkeeper.core.errors import CollaboratorFailure


@dataclass(frozen=True)
class TOTPKey:
    secret: str
    uri: str


def generate(issuer: str, account_name: str) -> TOTPKey:
    """Nueva semilla TOTP (base32) y su URI otpauth:// para la app del usuario."""
    try:
        secret = pyotp.random_base32()
        uri = pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=issuer)
    except (ValueError, TypeError) as e:
        raise CollaboratorFailure(f"unable to generate TOTP seed for {account_name}: {e}") from e
    return TOTPKey(secret=secret, uri=uri)


def render_qr(uri: str, width: int, height: int) -> bytes:
    try:
        img = qrcode.make(uri).get_image().resize((width, height))
        buf = BytesIO()
        img.save(buf, format="PNG")
    except (DataOverflowError, ValueError, OSError) as e:
        raise CollaboratorFailure(f"unable to render TOTP QR code: {e}") from e
    return buf.getvalue()
