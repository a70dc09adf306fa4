from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Config(BaseSettings):
    # Base de datos
    db_url: str = Field("sqlite+aiosqlite:///./vpnkeeper.sqlite3", alias="DB_URL")

    # Autoridad de certificación (PEM, clave opcionalmente cifrada)
    ca_cert_path: str = Field("./ca.crt", alias="CA_CERT_FILE")
    ca_key_path: str = Field("./ca.key", alias="CA_KEY_FILE")
    ca_key_password: str = Field("", alias="CA_KEY_PASSWORD")
    client_key_bits: int = Field(4096, alias="CLIENT_KEY_BITS")

    # Material del bundle .ovpn
    tls_auth_path: str = Field("./tls-auth.pem", alias="TLS_AUTH_FILE")
    ovpn_template_path: str = Field("./template.ovpn", alias="OVPN_TEMPLATE_FILE")

    # Imagen QR del TOTP (pixels)
    qr_size: int = Field(200, alias="QR_SIZE")

    # Servidor HTTP (uvicorn)
    bind_address: str = Field("127.0.0.1", alias="BIND_ADDRESS")
    port: int = Field(9090, alias="PORT")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: str | None = Field(None, alias="LOG_FILE")
    debug: bool = Field(False, alias="DEBUG")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,  # permite Config(db_url=...) además de las variables de entorno
    )
