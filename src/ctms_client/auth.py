"""
Session negotiation against the CTMS platform authorization service.

entry point (GET {url}/auth)
  -> identity providers (auth:identity-providers)
    -> token (POST auth:ropc-default, Resource Owner Password Credentials grant)
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from pydantic import ValidationError

from . import hal
from .client import CtmsClient
from .errors import AuthenticationError, CtmsClientError, CtmsHTTPError, DiscoveryError
from .models import ClientConfig, Credentials, Session
from .observability import meta

log = logging.getLogger("ctms_client.auth")

IDENTITY_PROVIDERS_REL = "auth:identity-providers"
IDENTITY_PROVIDER_REL = "auth:identity-provider"
ROPC_DEFAULT_REL = "auth:ropc-default"

_META = meta("authorize", "CTMS")


async def get_auth_endpoint(client: CtmsClient, base_url: str) -> Dict[str, Any]:
    url = f"{base_url.rstrip('/')}/auth"
    log.debug(f"get authorization end point with url: {url}", extra=_META)
    try:
        entry_point = await client.get(url, action="authorize")
    except CtmsClientError as exc:
        log.error(f"auth entry point unreachable: {exc}", extra=_META)
        raise DiscoveryError(f"Auth entry point {url} unreachable: {exc}") from exc

    if not isinstance(entry_point, dict) or not isinstance(
        entry_point.get("_links"), dict
    ):
        log.error("auth entry point is not a HAL document", extra=_META)
        raise DiscoveryError(f"Auth entry point {url} returned a malformed document")
    return entry_point


async def get_identity_providers(
    client: CtmsClient, entry_point: Dict[str, Any]
) -> Dict[str, Any]:
    log.debug("get identity providers", extra=_META)
    url = hal.get_link_href(entry_point, IDENTITY_PROVIDERS_REL)
    if not url:
        log.error(f"relation {IDENTITY_PROVIDERS_REL} missing", extra=_META)
        raise DiscoveryError(
            f"Auth entry point does not expose '{IDENTITY_PROVIDERS_REL}'"
        )
    try:
        providers = await client.get(url, action="authorize")
    except CtmsClientError as exc:
        log.error(f"identity providers unreachable: {exc}", extra=_META)
        raise DiscoveryError(f"Identity providers {url} unreachable: {exc}") from exc
    if not isinstance(providers, dict):
        raise DiscoveryError(f"Identity providers {url} returned a malformed document")
    return providers


def find_ropc_url(identity_providers: Dict[str, Any]) -> str:
    """Returns the href of the first provider exposing auth:ropc-default."""
    providers = hal.get_embedded(identity_providers, IDENTITY_PROVIDER_REL) or []
    if isinstance(providers, dict):
        providers = [providers]
    for provider in providers:
        href = hal.get_link_href(provider, ROPC_DEFAULT_REL)
        if href:
            return href
    raise DiscoveryError(f"No identity provider exposes '{ROPC_DEFAULT_REL}'")


async def authorize(
    client: CtmsClient,
    identity_providers: Dict[str, Any],
    credentials: Credentials,
    config: ClientConfig,
) -> Session:
    """
    Obtains a bearer token and installs it on ``client``.
    Credential rejections raise AuthenticationError and are never retried.
    """
    log.debug("login", extra=_META)
    url = find_ropc_url(identity_providers)

    try:
        envelope = await client.post_form(
            url,
            data=credentials.form(),
            headers={"Authorization": f"Basic {config.client_token}"},
            action="authorize",
        )
    except CtmsHTTPError as exc:
        log.error(f"login rejected with status {exc.status_code}", extra=_META)
        raise AuthenticationError(
            f"Login rejected: {exc.message}", status_code=exc.status_code
        ) from exc
    except CtmsClientError as exc:
        log.error(f"login failed: {exc}", extra=_META)
        raise

    try:
        session = Session.model_validate(envelope)
    except ValidationError as exc:
        raise AuthenticationError(
            f"Identity provider returned no access token: {exc}"
        ) from exc

    session.identity_providers = identity_providers
    client.install_session(session)
    return session


async def bootstrap(
    client: CtmsClient,
    base_url: str,
    credentials: Credentials,
    config: ClientConfig,
) -> Session:
    """Runs the three-step handshake and returns the installed session."""
    entry_point = await get_auth_endpoint(client, base_url)
    identity_providers = await get_identity_providers(client, entry_point)
    return await authorize(client, identity_providers, credentials, config)


__all__ = [
    "get_auth_endpoint",
    "get_identity_providers",
    "find_ropc_url",
    "authorize",
    "bootstrap",
]
