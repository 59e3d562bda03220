"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # HTTP gateway (Janus proxy, client config, static files)
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=8080)
    http_client_timeout_seconds: float = Field(default=30.0, gt=0)
    # Janus long-polls are held for up to 30s by the gateway before it answers.
    janus_proxy_timeout_seconds: float = Field(default=60.0, gt=0)

    # WebSocket side of the SIP relay (JsSIP clients connect here)
    sip_relay_enabled: bool = Field(
        default=True,
        description="If true, the HTTP process also runs the WebSocket-SIP relay.",
    )
    sip_ws_host: str = Field(default="0.0.0.0")
    sip_ws_port: int = Field(default=8089, description="WebSocket port for SIP clients.")

    # UDP side of the SIP relay
    sip_server_host: str = Field(default="sip.linphone.org", description="Upstream SIP server (UDP).")
    sip_server_port: int = Field(default=5060)
    sip_udp_bind_host: str = Field(
        default="0.0.0.0",
        description="Local address each per-client UDP socket binds to (port is OS-assigned).",
    )
    sip_advertised_host: str | None = Field(
        default=None,
        description="Address written into rewritten Via/Contact headers. Defaults to the socket's local address.",
    )

    # Relay bounds
    relay_max_sessions: int = Field(default=1024, ge=1)
    relay_idle_timeout_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Close sessions whose client sent nothing for this long. 0 disables.",
    )
    relay_inbound_queue_size: int = Field(
        default=256,
        ge=1,
        description="Upstream datagrams buffered per session before new ones are dropped.",
    )

    # Janus WebRTC gateway
    janus_api_url: str = Field(default="http://localhost:8088")
    janus_proxy_path: str = Field(default="/janus")

    # Remote account configuration service
    config_service_url: str | None = Field(
        default=None,
        description="Base URL of the account settings service, e.g. https://config.example.com",
    )

    # Client defaults returned by /api/config
    sip_client_server: str | None = Field(default=None, description="SIP domain the browser registers to.")
    sip_client_proxy: str | None = Field(default=None, description="WebSocket URL of this relay as seen by browsers.")
    sip_hangup_delay_ms: int = Field(default=2000, ge=0)
    webrtc_stun_servers: list[str] = Field(default_factory=lambda: ["stun:stun.l.google.com:19302"])
    webrtc_turn_servers: list[dict] = Field(default_factory=list)
    webrtc_ice_transport_policy: Literal["all", "relay"] = Field(default="all")
    opus_min_ptime: int = Field(default=10)
    opus_use_inband_fec: bool = Field(default=True)
    opus_max_average_bitrate: int = Field(default=64000)
    opus_stereo: bool = Field(default=False)
    opus_cbr: bool = Field(default=True)

    # CORS
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    cors_allow_methods: list[str] = Field(default_factory=lambda: ["*"])
    cors_allow_headers: list[str] = Field(default_factory=lambda: ["*"])

    static_dir: Path = Field(default=Path("./public"))

    @field_validator("janus_proxy_path")
    @classmethod
    def normalize_proxy_path(cls, value: str) -> str:
        value = "/" + value.strip("/")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
