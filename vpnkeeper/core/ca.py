# vpnkeeper/core/ca.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from vpnkeeper.core.errors import CollaboratorFailure


# límite de X.520 para CommonName; cryptography lo impone
CN_MAX_LENGTH = 64


@dataclass(frozen=True)
class Subject:
    org: str
    common_name: str

    def to_name(self) -> x509.Name:
        return x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, self.org),
            x509.NameAttribute(NameOID.COMMON_NAME, self.common_name[:CN_MAX_LENGTH]),
        ])

    def alt_names(self) -> x509.SubjectAlternativeName:
        # el email completo va siempre en el SAN, aunque el CN quede truncado
        return x509.SubjectAlternativeName([x509.RFC822Name(self.common_name)])


@dataclass(frozen=True)
class ClientKeypair:
    cert_pem: bytes
    key_pem: bytes
    fingerprint: str


def fingerprint_of(cert: x509.Certificate) -> str:
    """SHA-256 del certificado en DER, en hex minúscula."""
    return cert.fingerprint(hashes.SHA256()).hex()


class CertificateAuthority:
    """Signing authority loaded from a PEM certificate and (optionally encrypted) key."""

    def __init__(self, cert: x509.Certificate, key):
        self.cert = cert
        self.key = key

    @classmethod
    def load(cls, cert_path: str, key_path: str, password: str = "") -> "CertificateAuthority":
        try:
            cert = x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
            key = serialization.load_pem_private_key(
                Path(key_path).read_bytes(),
                password=password.encode() if password else None,
            )
        except (OSError, ValueError, TypeError) as e:
            raise CollaboratorFailure(f"unable to load CA from {cert_path}: {e}") from e
        return cls(cert, key)

    def issue_client_certificate(
        self,
        duration_days: int,
        subject: Subject,
        serial: int,
        key_bits: int = 4096,
    ) -> ClientKeypair:
        """
        Genera un par de claves RSA para el cliente y lo firma con la CA.
        La clave privada sólo existe en memoria y en el PEM devuelto.
        """
        try:
            client_key = rsa.generate_private_key(public_exponent=65537, key_size=key_bits)
            now = datetime.now(timezone.utc)
            cert = (
                x509.CertificateBuilder()
                .subject_name(subject.to_name())
                .issuer_name(self.cert.subject)
                .public_key(client_key.public_key())
                .serial_number(serial)
                .not_valid_before(now)
                .not_valid_after(now + timedelta(days=duration_days))
                .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
                .add_extension(
                    x509.KeyUsage(
                        digital_signature=True,
                        content_commitment=False,
                        key_encipherment=True,
                        data_encipherment=False,
                        key_agreement=False,
                        key_cert_sign=False,
                        crl_sign=False,
                        encipher_only=False,
                        decipher_only=False,
                    ),
                    critical=True,
                )
                .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False)
                .add_extension(subject.alt_names(), critical=False)
                .add_extension(x509.SubjectKeyIdentifier.from_public_key(client_key.public_key()), critical=False)
                .add_extension(
                    x509.AuthorityKeyIdentifier.from_issuer_public_key(self.key.public_key()),
                    critical=False,
                )
                .sign(self.key, hashes.SHA256())
            )
        except (ValueError, TypeError, OverflowError) as e:
            raise CollaboratorFailure(f"unable to sign client certificate: {e}") from e

        cert_pem = cert.public_bytes(serialization.Encoding.PEM)
        key_pem = client_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return ClientKeypair(cert_pem=cert_pem, key_pem=key_pem, fingerprint=fingerprint_of(cert))

    def export_chain_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)


def generate_authority(
    common_name: str,
    days: int = 3650,
    key_bits: int = 4096,
    password: str = "",
) -> tuple[bytes, bytes]:
    """
    Crea una CA autofirmada (para desarrollo y tests).
    Devuelve (cert_pem, key_pem); la clave va cifrada si se da password.
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=key_bits)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )

    if password:
        encryption = serialization.BestAvailableEncryption(password.encode())
    else:
        encryption = serialization.NoEncryption()
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )
    return cert.public_bytes(serialization.Encoding.PEM), key_pem
