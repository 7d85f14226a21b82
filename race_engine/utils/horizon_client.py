"""
Horizon Client
Async wrapper around the ledger's Horizon REST API
"""
from datetime import datetime, timezone
from decimal import Decimal
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import httpx
import structlog

from race_engine.errors import LedgerRejectedError, LedgerTransportError
from race_engine.models import AccountState

log = structlog.get_logger()


class HorizonClient:
    """
    High-level client for the ledger network
    Handles account loading, fee stats, submission and server time
    """

    BASE_URL = "https://api.mainnet.minepi.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        clock_timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.clock_timeout = clock_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "HorizonClient":
        return cls(
            base_url=settings.horizon_url,
            timeout=settings.http_timeout_s,
            clock_timeout=settings.clock_timeout_s,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "HorizonClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, translating transport failures."""
        client = await self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            log.info("horizon_timeout", method=method, path=path)
            raise LedgerTransportError(f"Timeout on {method} {path}") from e
        except httpx.TransportError as e:
            log.info("horizon_transport_error", method=method, path=path, error=str(e))
            raise LedgerTransportError(f"{type(e).__name__} on {method} {path}: {e}") from e

    @staticmethod
    def _rejection(resp: httpx.Response) -> LedgerRejectedError:
        """Build a structured rejection from a Horizon problem document."""
        try:
            data: Dict[str, Any] = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        result_codes = (data.get("extras") or {}).get("result_codes") or {}
        return LedgerRejectedError(
            status=resp.status_code,
            transaction_code=result_codes.get("transaction"),
            operation_codes=result_codes.get("operations") or [],
            detail=data.get("title", ""),
        )

    @staticmethod
    def _malformed(resp: httpx.Response, what: str) -> LedgerRejectedError:
        log.warning("horizon_malformed_response", status=resp.status_code, expected=what)
        return LedgerRejectedError(
            status=resp.status_code,
            detail=f"malformed response, expected {what}",
        )

    async def load_account(self, public_key: str) -> AccountState:
        """Fetch current sequence number and native balance"""
        resp = await self._request("GET", f"/accounts/{public_key}")

        if resp.status_code == 404:
            raise LedgerRejectedError(
                status=404,
                transaction_code="account_not_found",
                detail=f"Account {public_key[:8]}... not found",
            )
        if resp.status_code != 200:
            raise self._rejection(resp)

        try:
            data = resp.json()
            native = next(
                (b.get("balance", "0") for b in data.get("balances", [])
                 if b.get("asset_type") == "native"),
                "0",
            )
            return AccountState(
                account_id=data.get("account_id", public_key),
                sequence=int(data["sequence"]),
                native_balance=Decimal(str(native)),
            )
        except (ValueError, KeyError, TypeError, AttributeError, ArithmeticError) as e:
            raise self._malformed(resp, "account record") from e

    async def fetch_base_fee(self) -> int:
        """Fetch the last ledger's base fee in stroops"""
        resp = await self._request("GET", "/fee_stats")
        if resp.status_code != 200:
            raise self._rejection(resp)
        try:
            return int(resp.json()["last_ledger_base_fee"])
        except (ValueError, KeyError, TypeError) as e:
            raise self._malformed(resp, "fee stats") from e

    async def submit_transaction(self, envelope_xdr: str) -> str:
        """Submit a signed envelope and return its hash once applied"""
        resp = await self._request(
            "POST",
            "/transactions",
            data={"tx": envelope_xdr},
        )

        if resp.status_code == 200:
            try:
                tx_hash = resp.json()["hash"]
            except (ValueError, KeyError, TypeError) as e:
                raise self._malformed(resp, "transaction hash") from e
            log.info("horizon_submit_accepted", tx_hash=tx_hash)
            return tx_hash

        error = self._rejection(resp)
        log.debug(
            "horizon_submit_rejected",
            status=error.status,
            code=error.code,
            operations=error.operation_codes,
        )
        raise error

    async def fetch_server_time(self) -> datetime:
        """Read the server's wall clock from the Date header of a cheap request"""
        resp = await self._request("GET", "/", timeout=self.clock_timeout)
        date_header = resp.headers.get("Date")
        if not date_header:
            raise LedgerTransportError("Server response carried no Date header")
        try:
            server_time = parsedate_to_datetime(date_header)
        except (TypeError, ValueError) as e:
            raise LedgerTransportError(f"Unparseable Date header: {date_header}") from e
        if server_time.tzinfo is None:
            server_time = server_time.replace(tzinfo=timezone.utc)
        return server_time
