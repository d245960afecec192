from __future__ import annotations

import logging
from typing import Optional

import httpx

from . import auth, registry
from .client import CtmsClient, RetryConfig
from .config import load_env_config
from .models import ClientConfig, Credentials, Session
from .store import ResourceStore

log = logging.getLogger("ctms_client.connection")


class CtmsConnection:
    """
    Entry point of the SDK: a logged-in client plus the resources
    discovered for its session.

        async with await CtmsConnection.connect(url, credentials, config) as ctms:
            root = await locations.get_root(ctms.client, ctms.resources)
    """

    def __init__(
        self,
        *,
        url: str,
        client: CtmsClient,
        session: Session,
        resources: ResourceStore,
    ):
        self.url = url
        self.client = client
        self.session = session
        self.resources = resources

    @classmethod
    async def connect(
        cls,
        url: str,
        credentials: Credentials,
        config: ClientConfig,
        *,
        retry: Optional[RetryConfig] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> "CtmsConnection":
        url = url.rstrip("/")
        client = CtmsClient(
            base_url=url,
            timeout_seconds=config.timeout_seconds,
            retry=retry,
            http=http,
        )
        try:
            session = await auth.bootstrap(client, url, credentials, config)
            resources = await registry.discover(client, url)
        except BaseException:
            await client.aclose()
            raise
        resources.identity = session.identity_providers
        log.info(
            f"connected with {len(resources.relations)} relations",
            extra={"action": "connect", "ref": url},
        )
        return cls(url=url, client=client, session=session, resources=resources)

    @classmethod
    async def from_env(cls, **kwargs) -> "CtmsConnection":
        cfg = load_env_config()
        return await cls.connect(cfg.base_url, cfg.credentials, cfg.client, **kwargs)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "CtmsConnection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["CtmsConnection"]
