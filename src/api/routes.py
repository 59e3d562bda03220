"""FastAPI routes for the browser client: configuration and health."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header

from api.dependencies import get_account_config_service, get_relay_server
from api.schemas import (
    AccountSettings,
    ClientConfigResponse,
    HealthResponse,
    JanusClientConfig,
    OpusCodecConfig,
    SipClientConfig,
    WebRtcClientConfig,
)
from config.settings import Settings, get_settings
from integrations.config_service import AccountConfigService, decode_account_id, parse_bearer
from telephony.relay_server import RelayServer

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def build_client_config(settings: Settings, account_id: str, account: AccountSettings) -> ClientConfigResponse:
    return ClientConfigResponse(
        account_id=account_id,
        janus=JanusClientConfig(url=settings.janus_proxy_path),
        sip=SipClientConfig(
            server=account.server or settings.sip_client_server,
            proxy=account.proxy or settings.sip_client_proxy,
            username=account.username,
            password=account.password,
            display_name=account.display_name,
            destination_uri=account.destination_uri,
            hangup_delay=settings.sip_hangup_delay_ms,
        ),
        webrtc=WebRtcClientConfig(
            stun_servers=settings.webrtc_stun_servers,
            turn_servers=settings.webrtc_turn_servers,
            ice_transport_policy=settings.webrtc_ice_transport_policy,
            opus_codec=OpusCodecConfig(
                min_ptime=settings.opus_min_ptime,
                use_inband_fec=settings.opus_use_inband_fec,
                max_average_bitrate=settings.opus_max_average_bitrate,
                stereo=settings.opus_stereo,
                cbr=settings.opus_cbr,
            ),
        ),
    )


@router.get("/config", response_model=ClientConfigResponse)
async def get_client_config(
    authorization: Annotated[str | None, Header()] = None,
    service: AccountConfigService | None = Depends(get_account_config_service),
) -> ClientConfigResponse:
    token = parse_bearer(authorization)
    account_id = decode_account_id(token)

    if service is None:
        LOGGER.debug("No config service configured; serving defaults for account %s", account_id)
        account = AccountSettings()
    else:
        account = await service.fetch_account_settings(account_id, token)

    return build_client_config(get_settings(), account_id, account)


@router.get("/health", response_model=HealthResponse)
async def health(
    relay: RelayServer | None = Depends(get_relay_server),
) -> HealthResponse:
    if relay is None:
        return HealthResponse(relay_enabled=False)
    return HealthResponse(
        relay_enabled=True,
        relay_port=relay.port,
        active_sessions=len(relay.registry),
    )
