# vpnkeeper/core/bundle.py
import base64
from pathlib import Path
from string import Template

from vpnkeeper.core.errors import CollaboratorFailure


def render_bundle(template_path: str, ca: bytes, cert: bytes, key: bytes, tls_auth: bytes) -> str:
    """
    Rellena la plantilla .ovpn. Variables disponibles: ${ca}, ${cert}, ${key}, ${tls_auth}.
    Una variable desconocida en la plantilla es un fallo, no se deja sin sustituir.
    """
    try:
        template = Template(Path(template_path).read_text())
        return template.substitute(
            ca=ca.decode(),
            cert=cert.decode(),
            key=key.decode(),
            tls_auth=tls_auth.decode(),
        )
    except (OSError, KeyError, ValueError) as e:
        raise CollaboratorFailure(f"unable to render bundle template {template_path}: {e}") from e


def read_secret(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise CollaboratorFailure(f"unable to read shared secret {path}: {e}") from e


def data_url(media_type: str, payload: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(payload).decode()}"
