"""Tests for the terminal-side cash session controller."""

from decimal import Decimal

import httpx
import pytest

from caixapilot.client.cash_session_service import HttpCashSessionService
from caixapilot.controller.cash_session_controller import (
    MESSAGE_UNEXPECTED_ERROR,
    NOTICE_CLOSED,
    NOTICE_CLOSED_OFFLINE,
    NOTICE_OPENED,
    NOTICE_OPENED_OFFLINE,
    NOTICE_SANGRIA,
    NOTICE_SUPRIMENTO,
    CashSessionController,
)
from caixapilot.controller.state import Phase
from caixapilot.core.connectivity import StaticConnectivityChecker
from caixapilot.core.errors import (
    BackendRejectedError,
    InvalidStateError,
    NetworkUnreachableError,
    ValidationError,
)
from caixapilot.core.offline_cache import make_offline_session
from caixapilot.core.reconciliation import expected_cash, total_counted
from caixapilot.models.enums import DifferenceLevel, MovementType, OpenFallbackPolicy, SessionStatus
from tests.conftest import COMPANY_ID, USER_ID
from tests.factories import (
    CashSessionReadFactory,
    FakeCashSessionService,
    RecordingDrawer,
    rejected,
    unreachable,
)


@pytest.fixture
def service() -> FakeCashSessionService:
    return FakeCashSessionService()


@pytest.fixture
def drawer() -> RecordingDrawer:
    return RecordingDrawer()


@pytest.fixture
def make_controller(service, offline_repository, drawer):
    def _make(reachable: bool = True, policy: OpenFallbackPolicy = OpenFallbackPolicy.NETWORK_ONLY):
        return CashSessionController(
            service=service,
            connectivity=StaticConnectivityChecker(reachable),
            offline_repository=offline_repository,
            drawer=drawer,
            company_id=COMPANY_ID,
            user_id=USER_ID,
            fallback_policy=policy,
        )

    return _make


@pytest.fixture
async def open_controller(service, make_controller):
    """Controller holding an online session: opening 100, 500 cash sales, 300 debit."""
    service.current = CashSessionReadFactory.build(
        company_id=COMPANY_ID,
        opening_balance=Decimal("100.00"),
        total_dinheiro=Decimal("500.00"),
        total_debito=Decimal("300.00"),
    )
    controller = make_controller()
    await controller.load()
    return controller


class TestLoad:
    """Test resolving the current session."""

    @pytest.mark.asyncio
    async def test_unreachable_uses_cache(self, service, offline_repository, make_controller):
        cached = make_offline_session(COMPANY_ID, USER_ID, "200")
        offline_repository.save(cached)

        controller = make_controller(reachable=False)
        state = await controller.load()

        assert state.phase == Phase.OPEN
        assert state.offline
        assert state.session == cached
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_unreachable_without_cache(self, make_controller):
        state = await make_controller(reachable=False).load()
        assert state.phase == Phase.NO_SESSION
        assert state.reachable is False

    @pytest.mark.asyncio
    async def test_remote_session_is_cached(self, service, offline_repository, make_controller):
        service.current = CashSessionReadFactory.build(company_id=COMPANY_ID)

        state = await make_controller().load()

        assert state.phase == Phase.OPEN
        assert not state.offline
        assert offline_repository.load(COMPANY_ID, "01") == service.current

    @pytest.mark.asyncio
    async def test_pending_offline_session_survives_reachable_load(
        self, offline_repository, make_controller
    ):
        cached = make_offline_session(COMPANY_ID, USER_ID, "200")
        offline_repository.save(cached)

        state = await make_controller().load()

        assert state.phase == Phase.OPEN
        assert state.offline
        assert state.session.id == cached.id

    @pytest.mark.asyncio
    async def test_stale_server_session_is_dropped(self, offline_repository, make_controller):
        offline_repository.save(CashSessionReadFactory.build(company_id=COMPANY_ID))

        state = await make_controller().load()

        assert state.phase == Phase.NO_SESSION
        assert offline_repository.load(COMPANY_ID, "01") is None

    @pytest.mark.asyncio
    async def test_backend_failure_falls_back_to_cache(
        self, service, offline_repository, make_controller
    ):
        cached = CashSessionReadFactory.build(company_id=COMPANY_ID)
        offline_repository.save(cached)
        service.fail_with = rejected(500, "INTERNAL")

        state = await make_controller().load()

        assert state.phase == Phase.OPEN
        assert state.offline
        assert state.session == cached


class TestOpen:
    """Test opening with and without the backend."""

    @pytest.mark.asyncio
    async def test_offline_open(self, service, offline_repository, make_controller):
        controller = make_controller(reachable=False)
        await controller.load()

        result = await controller.open(Decimal("200"))

        assert result.offline
        assert result.message == NOTICE_OPENED_OFFLINE
        assert result.session.id.startswith("offline_")
        assert result.session.terminal_id == "01"
        assert result.session.opening_balance == Decimal("200.00")
        assert result.session.status == SessionStatus.ABERTO
        assert controller.state.phase == Phase.OPEN
        assert controller.state.offline
        assert offline_repository.load(COMPANY_ID, "01") == result.session
        assert "open" not in service.calls

    @pytest.mark.asyncio
    async def test_online_open(self, service, offline_repository, make_controller):
        controller = make_controller()
        await controller.load()

        result = await controller.open("150.00")

        assert not result.offline
        assert result.message == NOTICE_OPENED
        assert controller.state.phase == Phase.OPEN
        assert controller.state.notice == NOTICE_OPENED
        assert offline_repository.load(COMPANY_ID, "01") == result.session

    @pytest.mark.asyncio
    async def test_network_error_degrades_to_offline(self, service, make_controller):
        controller = make_controller()
        await controller.load()
        service.fail_with = unreachable()

        result = await controller.open("50")

        assert result.offline
        assert result.session.is_offline

    @pytest.mark.asyncio
    async def test_undecodable_response_degrades_to_offline(self, offline_repository):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/cash-sessions/current":
                return httpx.Response(200, json=None)
            raise httpx.DecodingError("corrupt gzip body", request=request)

        async with HttpCashSessionService(
            base_url="http://backend", transport=httpx.MockTransport(handler)
        ) as http_service:
            controller = CashSessionController(
                service=http_service,
                connectivity=StaticConnectivityChecker(True),
                offline_repository=offline_repository,
                company_id=COMPANY_ID,
                user_id=USER_ID,
            )
            await controller.load()
            result = await controller.open(200)

        assert result.offline
        assert controller.state.phase == Phase.OPEN
        assert offline_repository.load(COMPANY_ID, "01") == result.session

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_to_no_session(
        self, service, offline_repository, make_controller
    ):
        controller = make_controller()
        await controller.load()
        service.fail_with = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await controller.open("50")

        assert controller.state.phase == Phase.NO_SESSION
        assert controller.state.last_error == MESSAGE_UNEXPECTED_ERROR
        assert offline_repository.load(COMPANY_ID, "01") is None

        service.fail_with = None
        result = await controller.open("50")
        assert result.message == NOTICE_OPENED

    @pytest.mark.asyncio
    async def test_rejection_is_surfaced(self, service, offline_repository, make_controller):
        controller = make_controller()
        await controller.load()
        service.fail_with = rejected()

        with pytest.raises(BackendRejectedError) as exc_info:
            await controller.open("50")

        assert exc_info.value.status_code == 409
        assert controller.state.phase == Phase.NO_SESSION
        assert controller.state.last_error == "Terminal 01 já possui um caixa aberto"
        assert offline_repository.load(COMPANY_ID, "01") is None

    @pytest.mark.asyncio
    async def test_any_error_policy_degrades_rejection(self, service, make_controller):
        controller = make_controller(policy=OpenFallbackPolicy.ANY_ERROR)
        await controller.load()
        service.fail_with = rejected(500, "INTERNAL")

        result = await controller.open("50")

        assert result.offline
        assert controller.state.phase == Phase.OPEN

    @pytest.mark.asyncio
    async def test_custom_terminal(self, offline_repository, make_controller):
        controller = make_controller(reachable=False)
        await controller.load()

        result = await controller.open("10", terminal_id="07")

        assert result.session.terminal_id == "07"
        assert offline_repository.load(COMPANY_ID, "07") is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("balance", ["-1", "abc", "1.234"])
    async def test_invalid_balance(self, make_controller, balance):
        controller = make_controller()
        await controller.load()

        with pytest.raises(ValidationError):
            await controller.open(balance)

        assert controller.state.phase == Phase.NO_SESSION

    @pytest.mark.asyncio
    async def test_cannot_open_over_open_session(self, open_controller):
        with pytest.raises(InvalidStateError):
            await open_controller.open("10")


class TestMovements:
    """Test sangria and suprimento."""

    @pytest.mark.asyncio
    async def test_sangria_updates_totals_and_kicks_drawer(
        self, open_controller, service, drawer, offline_repository
    ):
        before = open_controller.session

        result = await open_controller.register_movement(MovementType.SANGRIA, "80.00")
        await open_controller.wait_for_side_effects()

        after = open_controller.session
        assert result.message == NOTICE_SANGRIA
        assert after.total_sangria == before.total_sangria + Decimal("80.00")
        assert expected_cash(after) == expected_cash(before) - Decimal("80.00")
        assert open_controller.state.phase == Phase.OPEN
        assert drawer.opened == 1
        assert service.movements[0].type == MovementType.SANGRIA
        assert offline_repository.load(COMPANY_ID, "01").total_sangria == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_suprimento(self, open_controller):
        result = await open_controller.register_movement("suprimento", 25, "Troco extra")

        assert result.message == NOTICE_SUPRIMENTO
        assert open_controller.session.total_suprimento == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_failure_keeps_session_unchanged(self, open_controller, service, drawer):
        before = open_controller.session
        service.fail_with = unreachable()

        with pytest.raises(NetworkUnreachableError):
            await open_controller.register_movement(MovementType.SANGRIA, "80.00")
        await open_controller.wait_for_side_effects()

        assert open_controller.state.phase == Phase.OPEN
        assert open_controller.session == before
        assert drawer.opened == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_to_open(self, open_controller, service, drawer):
        service.fail_with = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await open_controller.register_movement(MovementType.SANGRIA, "80.00")

        assert open_controller.state.phase == Phase.OPEN
        assert open_controller.state.last_error == MESSAGE_UNEXPECTED_ERROR
        assert drawer.opened == 0

        service.fail_with = None
        result = await open_controller.register_movement(MovementType.SANGRIA, "80.00")
        assert result.message == NOTICE_SANGRIA

    @pytest.mark.asyncio
    async def test_drawer_failure_does_not_fail_movement(self, open_controller, drawer):
        drawer.error = OSError("printer offline")

        result = await open_controller.register_movement(MovementType.SANGRIA, "10")
        await open_controller.wait_for_side_effects()

        assert result.message == NOTICE_SANGRIA
        assert drawer.opened == 1

    @pytest.mark.asyncio
    async def test_offline_session_refuses_movements(self, service, make_controller):
        controller = make_controller(reachable=False)
        await controller.load()
        await controller.open("100")

        with pytest.raises(InvalidStateError):
            await controller.register_movement(MovementType.SANGRIA, "10")

        assert "register_movement" not in service.calls
        assert controller.state.phase == Phase.OPEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, amount", [("abertura", "10"), ("sangria", "0"), ("x", "1")])
    async def test_invalid_movement(self, open_controller, kind, amount):
        with pytest.raises(ValidationError):
            await open_controller.register_movement(kind, amount)

    @pytest.mark.asyncio
    async def test_movement_requires_open_session(self, make_controller):
        controller = make_controller()
        await controller.load()

        with pytest.raises(InvalidStateError):
            await controller.register_movement(MovementType.SANGRIA, "10")


class TestClose:
    """Test closing and reconciliation."""

    @pytest.mark.asyncio
    async def test_live_reconciliation(self, open_controller):
        summary = open_controller.reconciliation({"dinheiro": "640", "debito": "300"})

        assert summary.expected_cash == Decimal("600.00")
        assert summary.total_expected == Decimal("900.00")
        assert summary.difference == Decimal("40.00")

    @pytest.mark.asyncio
    async def test_close_online(self, open_controller, offline_repository):
        result = await open_controller.close(
            {"dinheiro": "590", "debito": "300"}, notes="<b>faltou</b>"
        )

        assert result.message == NOTICE_CLOSED
        assert not result.offline
        assert result.summary.difference == Decimal("-10.00")
        assert result.summary.level == DifferenceLevel.ALERT
        assert result.session.status == SessionStatus.FECHADO
        assert result.session.notes == "faltou"
        assert open_controller.state.phase == Phase.NO_SESSION
        assert open_controller.session is None
        assert offline_repository.load(COMPANY_ID, "01") is None

    @pytest.mark.asyncio
    async def test_closed_session_rejects_further_operations(self, open_controller):
        await open_controller.close({"dinheiro": "900"})

        with pytest.raises(InvalidStateError):
            await open_controller.register_movement(MovementType.SANGRIA, "1")
        with pytest.raises(InvalidStateError):
            await open_controller.close({})

    @pytest.mark.asyncio
    async def test_close_failure_keeps_session(self, open_controller, service, offline_repository):
        before = open_controller.session
        service.fail_with = rejected(400, "INVALID_STATE")

        with pytest.raises(BackendRejectedError):
            await open_controller.close({"dinheiro": "900"})

        assert open_controller.state.phase == Phase.OPEN
        assert open_controller.session == before
        assert offline_repository.load(COMPANY_ID, "01") == before

    @pytest.mark.asyncio
    async def test_close_accepts_column_names(self, open_controller, service):
        counted = {"counted_dinheiro": "640", "counted_debito": "300"}

        result = await open_controller.close(counted)

        assert result.summary.total_counted == total_counted(counted) == Decimal("940.00")
        assert result.summary.difference == Decimal("40.00")
        assert service.closed_with.dinheiro == Decimal("640.00")
        assert service.closed_with.debito == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_method_key_wins_over_column_name(self, open_controller):
        summary = open_controller.reconciliation({"dinheiro": "600", "counted_dinheiro": "1"})

        assert summary.total_counted == Decimal("600.00")

    @pytest.mark.asyncio
    async def test_unknown_counted_key_is_rejected(self, open_controller, service):
        with pytest.raises(ValidationError):
            await open_controller.close({"cash": "900"})

        assert open_controller.state.phase == Phase.OPEN
        assert "close" not in service.calls

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_to_open(self, open_controller, service):
        service.fail_with = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await open_controller.close({"dinheiro": "900"})

        assert open_controller.state.phase == Phase.OPEN
        assert open_controller.state.last_error == MESSAGE_UNEXPECTED_ERROR

        service.fail_with = None
        result = await open_controller.close({"dinheiro": "900"})
        assert result.message == NOTICE_CLOSED

    @pytest.mark.asyncio
    async def test_close_offline_session_locally(self, service, offline_repository, make_controller):
        controller = make_controller(reachable=False)
        await controller.load()
        await controller.open("200")

        result = await controller.close({"dinheiro": "199.50"})

        assert result.offline
        assert result.message == NOTICE_CLOSED_OFFLINE
        assert result.session.status == SessionStatus.FECHADO
        assert result.session.difference == Decimal("-0.50")
        assert result.summary.level == DifferenceLevel.WARNING
        assert "close" not in service.calls
        assert offline_repository.load(COMPANY_ID, "01") is None
        assert controller.state.phase == Phase.NO_SESSION
