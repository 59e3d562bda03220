"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # Browser client and config service both speak camelCase JSON.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountSettings(_CamelModel):
    """Per-account values returned by the remote configuration service."""

    server: str | None = None
    proxy: str | None = None
    username: str | None = None
    password: str | None = None
    display_name: str | None = None
    destination_uri: str | None = None


class JanusClientConfig(_CamelModel):
    url: str


class SipClientConfig(_CamelModel):
    server: str | None = None
    proxy: str | None = None
    username: str | None = None
    password: str | None = None
    display_name: str | None = None
    destination_uri: str | None = None
    hangup_delay: int = Field(description="Milliseconds to wait before hanging up.")


class OpusCodecConfig(_CamelModel):
    min_ptime: int
    use_inband_fec: bool
    max_average_bitrate: int
    stereo: bool
    cbr: bool


class WebRtcClientConfig(_CamelModel):
    stun_servers: list[str]
    turn_servers: list[dict]
    ice_transport_policy: str
    opus_codec: OpusCodecConfig


class ClientConfigResponse(_CamelModel):
    account_id: str
    janus: JanusClientConfig
    sip: SipClientConfig
    webrtc: WebRtcClientConfig


class HealthResponse(_CamelModel):
    status: str = "ok"
    relay_enabled: bool
    relay_port: int | None = None
    active_sessions: int = 0
