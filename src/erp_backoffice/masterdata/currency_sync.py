"""Currency catalog sync: fetch ``{code: description}`` and insert missing codes."""

import logging
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.exceptions import ExternalServiceError
from erp_backoffice.masterdata.models import CurrencyModel

logger = logging.getLogger(__name__)

MAX_CODE_LENGTH = 10


class CurrencyCatalogClient:
    """Thin httpx adapter over the external currency catalog."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: BackofficeSettings) -> "CurrencyCatalogClient":
        return cls(settings.currency_catalog_url, timeout=settings.http_timeout)

    async def fetch(self) -> dict[str, str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.url)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as exc:
            raise ExternalServiceError("fetch currency catalog", str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise ExternalServiceError("decode currency catalog", "Response is not JSON") from exc

        if not isinstance(payload, dict):
            raise ExternalServiceError("decode currency catalog", "Expected a JSON object")
        return {str(code): str(desc) for code, desc in payload.items()}


class CurrencySyncService:
    """Idempotent import of the catalog; existing codes are left untouched."""

    def __init__(self, client: CurrencyCatalogClient):
        self.client = client

    async def sync(self, session: AsyncSession, actor_id: int | None) -> dict[str, Any]:
        catalog = await self.client.fetch()
        existing = set((await session.execute(select(CurrencyModel.code))).scalars().all())

        created, skipped, failed = 0, 0, []
        for code, description in sorted(catalog.items()):
            code = code.strip().upper()
            if code in existing:
                skipped += 1
                continue
            if not code or len(code) > MAX_CODE_LENGTH:
                failed.append({"code": code, "error": "Invalid currency code"})
                continue
            session.add(
                CurrencyModel(
                    code=code,
                    description=description[:255],
                    created_by_id=actor_id,
                    updated_by_id=actor_id,
                )
            )
            existing.add(code)
            created += 1

        await session.flush()
        if failed:
            logger.warning("Currency sync finished with %d failure(s)", len(failed))
        logger.info("Currency sync created=%d skipped=%d", created, skipped)
        return {"created": created, "skipped": skipped, "failed": failed}
