# tests/conftest.py
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# --- Asegurar que podemos importar 'vpnkeeper' desde la raíz del repo ---
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vpnkeeper.core.ca import generate_authority
from vpnkeeper.core.config import Config

CA_PASSWORD = "Sekr1tPassw0rd!"
TLS_AUTH = "-----BEGIN OpenVPN Static key V1-----\n0123456789abcdef\n-----END OpenVPN Static key V1-----\n"
TEMPLATE = "client\n<ca>\n${ca}</ca>\n<cert>\n${cert}</cert>\n<key>\n${key}</key>\n<tls-auth>\n${tls_auth}</tls-auth>\n"


@pytest.fixture(scope="session")
def pki(tmp_path_factory) -> dict:
    """CA efímera (clave cifrada), secreto tls-auth y plantilla .ovpn, una vez por sesión."""
    d = tmp_path_factory.mktemp("pki")
    cert_pem, key_pem = generate_authority("test CA", days=30, key_bits=2048, password=CA_PASSWORD)
    (d / "ca.crt").write_bytes(cert_pem)
    (d / "ca.key").write_bytes(key_pem)
    (d / "tls-auth.pem").write_text(TLS_AUTH)
    (d / "template.ovpn").write_text(TEMPLATE)
    return {
        "ca_cert_path": str(d / "ca.crt"),
        "ca_key_path": str(d / "ca.key"),
        "ca_key_password": CA_PASSWORD,
        "tls_auth_path": str(d / "tls-auth.pem"),
        "ovpn_template_path": str(d / "template.ovpn"),
    }


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "test.sqlite3"


@pytest.fixture
def make_config(pki, db_path):
    def _make(**overrides) -> Config:
        values = dict(pki)
        values.update(
            db_url=f"sqlite+aiosqlite:///{db_path.as_posix()}",
            client_key_bits=2048,
            qr_size=120,
        )
        values.update(overrides)
        return Config(**values)
    return _make


@pytest.fixture
def client(make_config):
    """
    Cliente de pruebas con BD sqlite nueva en cada test.
    Con 'with' forzamos lifespan: crea tablas en startup y cierra engine en shutdown.
    """
    from vpnkeeper.main import create_app
    with TestClient(create_app(make_config())) as c:
        yield c


def enroll(client, email: str):
    r = client.put(f"/user/{email}")
    assert r.status_code in (200, 201)
    return r


def issue(client, email: str, description: str) -> str:
    r = client.post(f"/certs/{email}", json={"Email": email, "Description": description})
    assert r.status_code == 201
    return r.json()["Fingerprint"]


def events(client, before: str = "all") -> list[dict]:
    r = client.get("/events", params={"before": before})
    assert r.status_code == 200
    return r.json()["Events"]
