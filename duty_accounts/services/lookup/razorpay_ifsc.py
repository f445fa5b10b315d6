"""
Routing-Code Lookup using the Razorpay IFSC directory

DESIGN DECISION: We use the public Razorpay IFSC API because:
1. It returns live data from official banking records
2. It needs no API key
3. A plain GET per code is idempotent and safe to retry

GET {base_url}/{CODE} returns JSON with BANK, BRANCH and IFSC fields;
404 means the code does not exist.

CRITICAL: This service never raises for lookup failures. Transport errors
are retried, then reported as None so that the caller can still save
the record with an unresolved bank/branch.
"""

from typing import Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from duty_accounts.config import get_settings
from duty_accounts.services.lookup.interface import (
    RoutingCodeLookupInterface,
    RoutingCodeLookupResult,
)


logger = structlog.get_logger(__name__)


class RazorpayIFSCLookup(RoutingCodeLookupInterface):
    """HTTP client for https://ifsc.razorpay.com."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings().ifsc_lookup
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = timeout or settings.timeout_seconds
        self.max_attempts = max_attempts or settings.max_attempts
        self._transport = transport

    def _parse(self, data: dict) -> Optional[RoutingCodeLookupResult]:
        """Map the API payload; a payload without a bank name is unusable."""
        bank = str(data.get("BANK") or "").strip()
        if not bank:
            return None
        return RoutingCodeLookupResult(
            bank_name=bank.upper(),
            branch_name=str(data.get("BRANCH") or "").strip(),
            routing_code=str(data.get("IFSC") or "").strip().upper(),
        )

    async def _fetch(self, client: httpx.AsyncClient, code: str) -> Optional[dict]:
        response = await client.get(f"{self.base_url}/{code}")
        if response.status_code == 404:
            logger.warning("ifsc_not_found", routing_code=code)
            return None
        response.raise_for_status()
        return response.json()

    async def lookup(self, code: str) -> Optional[RoutingCodeLookupResult]:
        """Look up a routing code; None when not found or unreachable."""
        code = (code or "").strip().upper()
        if not code:
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_attempts),
                    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                    retry=retry_if_exception_type(httpx.TransportError),
                    reraise=False,
                ):
                    with attempt:
                        data = await self._fetch(client, code)
        except RetryError as e:
            logger.error(
                "ifsc_lookup_unreachable",
                routing_code=code,
                attempts=self.max_attempts,
                error=str(e.last_attempt.exception()),
            )
            return None
        except httpx.HTTPStatusError as e:
            logger.error(
                "ifsc_lookup_http_error",
                routing_code=code,
                status_code=e.response.status_code,
            )
            return None
        except httpx.RequestError as e:
            logger.error(
                "ifsc_lookup_request_error",
                routing_code=code,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        except ValueError as e:
            # Response body was not JSON
            logger.error("ifsc_lookup_bad_payload", routing_code=code, error=str(e))
            return None

        if data is None:
            return None
        if not isinstance(data, dict):
            logger.error("ifsc_lookup_bad_payload", routing_code=code)
            return None

        result = self._parse(data)
        if result is not None and not result.routing_code:
            result = result.model_copy(update={"routing_code": code})
        return result
