# tests/test_core.py
import asyncio
import json
import logging
import os
from datetime import timezone
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from conftest import CA_PASSWORD
from vpnkeeper.core import totp
from vpnkeeper.core.bundle import data_url, read_secret, render_bundle
from vpnkeeper.core.ca import CN_MAX_LENGTH, CertificateAuthority, Subject
from vpnkeeper.core.errors import CollaboratorFailure, InvalidArgument
from vpnkeeper.services.audit import parse_cursor
from vpnkeeper.services.certificates import allocate_serial
from vpnkeeper.services.settings import parse_domains


def test_allocate_serial():
    serials = {allocate_serial() for _ in range(50)}
    assert len(serials) == 50
    for s in serials:
        n = int(s, 16)
        assert 0 < n < 2 ** 128
        assert s == s.lower()


def test_parse_domains():
    assert parse_domains("") == []
    assert parse_domains("b.com  a.com b.com ") == ["a.com", "b.com"]


def test_parse_cursor():
    t = parse_cursor("2024-05-01T10:20:30Z")
    assert (t.year, t.second, t.microsecond, t.tzinfo) == (2024, 30, 0, timezone.utc)
    assert parse_cursor("2024-05-01T10:20:30.000123Z").microsecond == 123
    with pytest.raises(InvalidArgument):
        parse_cursor("2024-05-01")


def test_authority_issues_client_certificate(pki):
    ca = CertificateAuthority.load(pki["ca_cert_path"], pki["ca_key_path"], CA_PASSWORD)
    kp = ca.issue_client_certificate(10, Subject(org="Test VPN", common_name="alice@example.com"), 0xABC, 2048)

    cert = x509.load_pem_x509_certificate(kp.cert_pem)
    assert cert.serial_number == 0xABC
    assert cert.fingerprint(hashes.SHA256()).hex() == kp.fingerprint
    assert cert.issuer == ca.cert.subject
    assert cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "alice@example.com"
    assert cert.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value == "Test VPN"
    eku = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    assert ExtendedKeyUsageOID.CLIENT_AUTH in eku
    assert b"PRIVATE KEY" in kp.key_pem
    assert ca.export_chain_pem().startswith(b"-----BEGIN CERTIFICATE-----")


def test_authority_load_failures(pki, tmp_path):
    with pytest.raises(CollaboratorFailure):
        CertificateAuthority.load(pki["ca_cert_path"], pki["ca_key_path"], "wrong")
    with pytest.raises(CollaboratorFailure):
        CertificateAuthority.load(str(tmp_path / "missing.crt"), pki["ca_key_path"], CA_PASSWORD)


def test_render_bundle(tmp_path):
    tpl = tmp_path / "t.ovpn"
    tpl.write_text("<ca>${ca}</ca><cert>${cert}</cert><key>${key}</key><tls>${tls_auth}</tls>")
    out = render_bundle(str(tpl), ca=b"A", cert=b"B", key=b"C", tls_auth=b"D")
    assert out == "<ca>A</ca><cert>B</cert><key>C</key><tls>D</tls>"

    tpl.write_text("${unknown}")
    with pytest.raises(CollaboratorFailure):
        render_bundle(str(tpl), ca=b"A", cert=b"B", key=b"C", tls_auth=b"D")
    with pytest.raises(CollaboratorFailure):
        render_bundle(str(tmp_path / "missing.ovpn"), ca=b"A", cert=b"B", key=b"C", tls_auth=b"D")
    with pytest.raises(CollaboratorFailure):
        read_secret(str(tmp_path / "missing.pem"))


def test_data_url():
    assert data_url("image/png", b"hi") == "data:image/png;base64,aGk="


def test_totp_generate_and_qr():
    a = totp.generate("Test VPN", "alice@example.com")
    b = totp.generate("Test VPN", "alice@example.com")
    assert a.secret != b.secret

    uri = urlparse(a.uri)
    assert uri.scheme == "otpauth"
    assert uri.netloc == "totp"
    query = parse_qs(uri.query)
    assert query["secret"] == [a.secret]
    assert query["issuer"] == ["Test VPN"]

    png = totp.render_qr(a.uri, 80, 80)
    assert png[:8] == b"\x89PNG\r\n\x1a\n"


def test_authority_truncates_long_common_name(pki):
    ca = CertificateAuthority.load(pki["ca_cert_path"], pki["ca_key_path"], CA_PASSWORD)
    email = "b" * 70 + "@example.com"
    kp = ca.issue_client_certificate(10, Subject(org="Test VPN", common_name=email), 0xABD, 2048)

    cert = x509.load_pem_x509_certificate(kp.cert_pem)
    assert cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == email[:CN_MAX_LENGTH]
    san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    assert san.get_values_for_type(x509.RFC822Name) == [email]


def test_authority_rejects_out_of_range_duration(pki):
    ca = CertificateAuthority.load(pki["ca_cert_path"], pki["ca_key_path"], CA_PASSWORD)
    subject = Subject(org="Test VPN", common_name="alice@example.com")
    # más allá del año 9999
    with pytest.raises(CollaboratorFailure):
        ca.issue_client_certificate(5_000_000, subject, 0xABE, 2048)


def test_qr_overflow_is_collaborator_failure():
    with pytest.raises(CollaboratorFailure):
        totp.render_qr("otpauth://totp/x?secret=" + "A" * 5000, 80, 80)


def test_log_file_added_by_later_app(make_config, tmp_path):
    from vpnkeeper.main import create_app

    log_file = os.path.abspath(tmp_path / "logs" / "vpnkeeper.log")
    logger = logging.getLogger("vpnkeeper")

    def file_handlers():
        return [h for h in logger.handlers if isinstance(h, logging.FileHandler) and h.baseFilename == log_file]

    try:
        create_app(make_config(log_file=log_file))
        assert len(file_handlers()) == 1
        # una segunda app con el mismo fichero no duplica el handler
        create_app(make_config(log_file=log_file))
        assert len(file_handlers()) == 1

        logger.info("written to file")
        file_handlers()[0].flush()
        with open(log_file) as f:
            line = f.read().strip().splitlines()[-1]
        assert json.loads(line)["msg"] == "written to file"
    finally:
        for h in file_handlers():
            logger.removeHandler(h)
            h.close()


def test_run_starts_uvicorn(monkeypatch):
    from vpnkeeper import main

    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    main.run()
    config = main.app.state.config
    assert calls == [(main.app, {"host": config.bind_address, "port": config.port, "log_config": None})]


def test_upsert_rejects_unknown_dialect():
    from vpnkeeper.db.models import Setting
    from vpnkeeper.db.upsert import upsert

    class _Session:
        def get_bind(self):
            return SimpleNamespace(dialect=SimpleNamespace(name="mysql"))

    with pytest.raises(ValueError):
        asyncio.run(upsert(_Session(), Setting, ["key"], {"key": "k", "value": "v"}, ["value"]))
