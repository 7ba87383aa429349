"""Terminal-side client of the authoritative cash session service."""

from decimal import Decimal
from typing import Any, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from caixapilot.core.errors import BackendRejectedError, NetworkUnreachableError
from caixapilot.core.logging import get_logger, get_request_id
from caixapilot.core.settings import API_URL, SERVICE_TIMEOUT_SECONDS
from caixapilot.models.cash_session_schemas import (
    CashMovementRead,
    CashSessionRead,
    CountedAmounts,
)
from caixapilot.models.enums import MovementType

logger = get_logger(__name__)


class CashSessionService(Protocol):
    """Backend operations the controller depends on."""

    async def get_current_session(
        self, company_id: str, terminal_id: str | None = None
    ) -> CashSessionRead | None: ...

    async def open(
        self,
        *,
        company_id: str,
        user_id: str,
        opening_balance: Decimal,
        terminal_id: str,
    ) -> CashSessionRead: ...

    async def register_movement(
        self,
        *,
        company_id: str,
        user_id: str,
        session_id: str,
        type: MovementType,
        amount: Decimal,
        description: str | None = None,
    ) -> CashMovementRead: ...

    async def close(
        self,
        *,
        session_id: str,
        company_id: str,
        user_id: str,
        counted: CountedAmounts,
        notes: str | None = None,
    ) -> CashSessionRead: ...


def _money(value: Decimal | None) -> str:
    return str(value if value is not None else Decimal("0.00"))


class HttpCashSessionService:
    """httpx implementation of CashSessionService.

    Any httpx.RequestError becomes NetworkUnreachableError; any non-2xx
    answer becomes BackendRejectedError carrying the backend's error code.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = SERVICE_TIMEOUT_SECONDS,
        terminal_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if terminal_id:
            headers["X-Terminal-ID"] = terminal_id
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpCashSessionService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {"X-Request-ID": get_request_id()}
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            logger.warning(
                "cash_session_service.unreachable",
                method=method,
                path=path,
                error=type(exc).__name__,
            )
            raise NetworkUnreachableError(details={"error": type(exc).__name__}) from exc

        if response.is_error:
            raise self._rejection(response)
        return response

    @staticmethod
    def _rejection(response: httpx.Response) -> BackendRejectedError:
        code = "BACKEND_REJECTED"
        message = f"Servidor recusou a operação (HTTP {response.status_code})"
        details: dict[str, Any] = {}
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            code = body.get("code") or code
            message = body.get("message") or message
            if isinstance(body.get("details"), dict):
                details = body["details"]
            elif "detail" in body:
                details = {"detail": body["detail"]}

        logger.warning(
            "cash_session_service.rejected",
            status_code=response.status_code,
            code=code,
        )
        return BackendRejectedError(
            message=message,
            status_code=response.status_code,
            code=code,
            details=details,
        )

    @staticmethod
    def _parse(model, response: httpx.Response):
        try:
            return model.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise BackendRejectedError(
                message="Resposta inválida do servidor",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            ) from exc

    async def get_current_session(
        self, company_id: str, terminal_id: str | None = None
    ) -> CashSessionRead | None:
        params = {"company_id": company_id}
        if terminal_id:
            params["terminal_id"] = terminal_id
        response = await self._request("GET", "/cash-sessions/current", params=params)
        if response.content.strip() in (b"", b"null"):
            return None
        return self._parse(CashSessionRead, response)

    async def open(
        self,
        *,
        company_id: str,
        user_id: str,
        opening_balance: Decimal,
        terminal_id: str,
    ) -> CashSessionRead:
        response = await self._request(
            "POST",
            "/cash-sessions",
            json={
                "company_id": company_id,
                "user_id": user_id,
                "opening_balance": _money(opening_balance),
                "terminal_id": terminal_id,
            },
        )
        return self._parse(CashSessionRead, response)

    async def register_movement(
        self,
        *,
        company_id: str,
        user_id: str,
        session_id: str,
        type: MovementType,
        amount: Decimal,
        description: str | None = None,
    ) -> CashMovementRead:
        response = await self._request(
            "POST",
            f"/cash-sessions/{session_id}/movements",
            json={
                "company_id": company_id,
                "user_id": user_id,
                "type": MovementType(type).value,
                "amount": _money(amount),
                "description": description,
            },
        )
        return self._parse(CashMovementRead, response)

    async def close(
        self,
        *,
        session_id: str,
        company_id: str,
        user_id: str,
        counted: CountedAmounts,
        notes: str | None = None,
    ) -> CashSessionRead:
        response = await self._request(
            "POST",
            f"/cash-sessions/{session_id}/close",
            json={
                "company_id": company_id,
                "user_id": user_id,
                "counted_dinheiro": _money(counted.dinheiro),
                "counted_debito": _money(counted.debito),
                "counted_credito": _money(counted.credito),
                "counted_pix": _money(counted.pix),
                "notes": notes,
            },
        )
        return self._parse(CashSessionRead, response)

    async def list_movements(self, session_id: str, company_id: str) -> list[CashMovementRead]:
        response = await self._request(
            "GET",
            f"/cash-sessions/{session_id}/movements",
            params={"company_id": company_id},
        )
        try:
            return [CashMovementRead.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, PydanticValidationError) as exc:
            raise BackendRejectedError(
                message="Resposta inválida do servidor",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            ) from exc
