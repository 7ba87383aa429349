# File: tests/test_cash_session_api.py
"""Tests for cash session endpoints."""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caixapilot.models.cash_movement import CashMovement
from caixapilot.models.cash_session import CashSession
from tests.conftest import COMPANY_ID, USER_ID
from tests.factories import CashSessionFactory


async def _open(client: AsyncClient, terminal_id: str = "01", opening_balance: str = "100.00"):
    return await client.post(
        "/cash-sessions",
        json={
            "company_id": COMPANY_ID,
            "user_id": USER_ID,
            "opening_balance": opening_balance,
            "terminal_id": terminal_id,
        },
    )


class TestOpenCashSession:
    """Test opening cash sessions."""

    @pytest.mark.asyncio
    async def test_open_session_success(self, client: AsyncClient, db_session: AsyncSession):
        response = await _open(client, opening_balance="200.00")

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "aberto"
        assert data["terminal_id"] == "01"
        assert Decimal(data["opening_balance"]) == Decimal("200.00")
        assert Decimal(data["total_sangria"]) == Decimal("0.00")

        result = await db_session.execute(
            select(CashMovement).where(CashMovement.session_id == data["id"])
        )
        movements = result.scalars().all()
        assert [m.type for m in movements] == ["abertura"]

    @pytest.mark.asyncio
    async def test_second_open_on_same_terminal_conflicts(self, client: AsyncClient):
        first = await _open(client)
        second = await _open(client)

        assert first.status_code == 201
        assert second.status_code == 409
        body = second.json()
        assert body["code"] == "CONFLICT"
        assert body["details"]["session_id"] == first.json()["id"]

    @pytest.mark.asyncio
    async def test_other_terminal_can_open(self, client: AsyncClient):
        assert (await _open(client, terminal_id="01")).status_code == 201
        assert (await _open(client, terminal_id="02")).status_code == 201

    @pytest.mark.asyncio
    @pytest.mark.parametrize("balance", ["-5.00", "1.234", "abc"])
    async def test_invalid_opening_balance(self, client: AsyncClient, balance: str):
        response = await _open(client, opening_balance=balance)
        assert response.status_code == 422


class TestCurrentSession:
    """Test GET /cash-sessions/current."""

    @pytest.mark.asyncio
    async def test_no_open_session_returns_null(self, client: AsyncClient):
        response = await client.get("/cash-sessions/current", params={"company_id": COMPANY_ID})

        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.asyncio
    async def test_returns_open_session(self, client: AsyncClient, db_session: AsyncSession):
        session = await CashSessionFactory.create(db_session, terminal_id="03")

        response = await client.get(
            "/cash-sessions/current",
            params={"company_id": COMPANY_ID, "terminal_id": "03"},
        )

        assert response.status_code == 200
        assert response.json()["id"] == session.id

    @pytest.mark.asyncio
    async def test_closed_session_is_not_current(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        await CashSessionFactory.create(db_session, status="fechado")

        response = await client.get("/cash-sessions/current", params={"company_id": COMPANY_ID})

        assert response.json() is None

    @pytest.mark.asyncio
    async def test_company_id_required(self, client: AsyncClient):
        response = await client.get("/cash-sessions/current")
        assert response.status_code == 422


class TestMovements:
    """Test sangria and suprimento registration."""

    @pytest.mark.asyncio
    async def test_sangria_updates_accumulator(self, client: AsyncClient, db_session: AsyncSession):
        session_id = (await _open(client)).json()["id"]

        response = await client.post(
            f"/cash-sessions/{session_id}/movements",
            json={
                "company_id": COMPANY_ID,
                "user_id": USER_ID,
                "type": "sangria",
                "amount": "80.00",
                "description": "Depósito <script>x</script>",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "sangria"
        assert data["description"] == "Depósito x"

        row = await db_session.get(CashSession, session_id)
        assert row.total_sangria == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_suprimento_accumulates(self, client: AsyncClient, db_session: AsyncSession):
        session_id = (await _open(client)).json()["id"]
        for amount in ("10.00", "15.50"):
            response = await client.post(
                f"/cash-sessions/{session_id}/movements",
                json={
                    "company_id": COMPANY_ID,
                    "user_id": USER_ID,
                    "type": "suprimento",
                    "amount": amount,
                },
            )
            assert response.status_code == 201

        row = await db_session.get(CashSession, session_id)
        assert row.total_suprimento == Decimal("25.50")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "movement_type, amount",
        [("abertura", "10.00"), ("sangria", "0"), ("sangria", "-1.00"), ("troca", "1.00")],
    )
    async def test_invalid_movement(self, client: AsyncClient, movement_type: str, amount: str):
        session_id = (await _open(client)).json()["id"]

        response = await client.post(
            f"/cash-sessions/{session_id}/movements",
            json={
                "company_id": COMPANY_ID,
                "user_id": USER_ID,
                "type": movement_type,
                "amount": amount,
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient):
        response = await client.post(
            "/cash-sessions/does-not-exist/movements",
            json={"company_id": COMPANY_ID, "user_id": USER_ID, "type": "sangria", "amount": "1"},
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_session_of_other_company_is_hidden(self, client: AsyncClient):
        session_id = (await _open(client)).json()["id"]

        response = await client.post(
            f"/cash-sessions/{session_id}/movements",
            json={"company_id": "outra", "user_id": USER_ID, "type": "sangria", "amount": "1"},
        )

        assert response.status_code == 404


class TestCloseCashSession:
    """Test closing with counted amounts."""

    @pytest.mark.asyncio
    async def test_close_persists_difference(self, client: AsyncClient, db_session: AsyncSession):
        session = await CashSessionFactory.create(
            db_session,
            opening_balance=Decimal("200.00"),
            total_dinheiro=Decimal("500.00"),
            total_debito=Decimal("300.00"),
            total_suprimento=Decimal("50.00"),
            total_sangria=Decimal("100.00"),
        )

        response = await client.post(
            f"/cash-sessions/{session.id}/close",
            json={
                "company_id": COMPANY_ID,
                "user_id": USER_ID,
                "counted_dinheiro": "640.00",
                "counted_debito": "300.00",
                "notes": "Conferido",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "fechado"
        assert Decimal(data["closing_balance"]) == Decimal("940.00")
        assert Decimal(data["difference"]) == Decimal("-10.00")
        assert Decimal(data["counted_pix"]) == Decimal("0.00")
        assert data["closed_by"] == USER_ID
        assert data["closed_at"] is not None

    @pytest.mark.asyncio
    async def test_closed_session_rejects_mutations(self, client: AsyncClient):
        session_id = (await _open(client)).json()["id"]
        close_body = {"company_id": COMPANY_ID, "user_id": USER_ID, "counted_dinheiro": "100.00"}

        assert (await client.post(f"/cash-sessions/{session_id}/close", json=close_body)).status_code == 200

        again = await client.post(f"/cash-sessions/{session_id}/close", json=close_body)
        assert again.status_code == 400
        assert again.json()["code"] == "INVALID_STATE"

        movement = await client.post(
            f"/cash-sessions/{session_id}/movements",
            json={"company_id": COMPANY_ID, "user_id": USER_ID, "type": "sangria", "amount": "1"},
        )
        assert movement.status_code == 400

    @pytest.mark.asyncio
    async def test_terminal_can_reopen_after_close(self, client: AsyncClient):
        session_id = (await _open(client)).json()["id"]
        await client.post(
            f"/cash-sessions/{session_id}/close",
            json={"company_id": COMPANY_ID, "user_id": USER_ID, "counted_dinheiro": "100.00"},
        )

        response = await _open(client)
        assert response.status_code == 201
        assert response.json()["id"] != session_id


class TestMovementHistory:
    """Test GET /cash-sessions/{id}/movements."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_history(self, client: AsyncClient):
        session_id = (await _open(client)).json()["id"]
        await client.post(
            f"/cash-sessions/{session_id}/movements",
            json={"company_id": COMPANY_ID, "user_id": USER_ID, "type": "sangria", "amount": "20"},
        )
        await client.post(
            f"/cash-sessions/{session_id}/close",
            json={"company_id": COMPANY_ID, "user_id": USER_ID, "counted_dinheiro": "80.00"},
        )

        response = await client.get(
            f"/cash-sessions/{session_id}/movements", params={"company_id": COMPANY_ID}
        )

        assert response.status_code == 200
        types = [m["type"] for m in response.json()]
        assert types == ["abertura", "sangria", "fechamento"]
        assert response.json()[-1]["description"] == "Fechamento - Diferença: 0.00"
