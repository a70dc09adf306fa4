# Genera el material necesario para arrancar en local:
#   ca.crt / ca.key (cifrada con CA_KEY_PASSWORD), tls-auth.pem y template.ovpn
import os
import secrets
import sys
from pathlib import Path

from vpnkeeper.core.ca import generate_authority

TEMPLATE = """client
dev tun
proto udp
remote vpn.example.com 1194
nobind
persist-key
persist-tun
remote-cert-tls server
key-direction 1
<ca>
${ca}</ca>
<cert>
${cert}</cert>
<key>
${key}</key>
<tls-auth>
${tls_auth}</tls-auth>
"""


def tls_auth_key() -> str:
    body = secrets.token_hex(256)
    lines = [body[i:i + 32] for i in range(0, len(body), 32)]
    return "-----BEGIN OpenVPN Static key V1-----\n" + "\n".join(lines) + "\n-----END OpenVPN Static key V1-----\n"


out = Path(sys.argv[1] if len(sys.argv) > 1 else ".")
out.mkdir(parents=True, exist_ok=True)
cert_pem, key_pem = generate_authority("vpnkeeper dev CA", password=os.environ.get("CA_KEY_PASSWORD", ""))
(out / "ca.crt").write_bytes(cert_pem)
(out / "ca.key").write_bytes(key_pem)
(out / "tls-auth.pem").write_text(tls_auth_key())
(out / "template.ovpn").write_text(TEMPLATE)
print(f"wrote ca.crt, ca.key, tls-auth.pem, template.ovpn to {out.resolve()}")
