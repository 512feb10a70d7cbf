"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is driven by environment variables."""

    # Default connection target (overridable per connect request)
    ssh_host: str = "127.0.0.1"
    ssh_port: int = 22
    ssh_username: str = ""

    # Unencrypted private key, resolved at connect time
    ssh_key_path: str = "~/.ssh/id_ed25519"

    # Transport
    ssh_connect_timeout_seconds: int = 15
    ssh_strict_host_key: bool = False
    ssh_keepalive_seconds: int = 30

    # Shell protocol
    shell_handshake_attempts: int = 10
    shell_handshake_timeout_seconds: float = 2.0
    shell_command_timeout_seconds: float = 30.0
    shell_recv_bytes: int = 65535

    # API key
    api_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Env defaults only; live session state belongs to ShellService
settings = Settings()
