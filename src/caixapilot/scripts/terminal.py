# File: src/caixapilot/scripts/terminal.py
"""Operator command line for one POS terminal's cash drawer.

Usage:
    caixapilot-terminal --company ACME --user maria status
    caixapilot-terminal --company ACME --user maria open 200
    caixapilot-terminal --company ACME --user maria sangria 80 --description "Depósito"
    caixapilot-terminal --company ACME --user maria close --dinheiro 940 --pix 15.50
"""

import argparse
import asyncio
import sys

from caixapilot.controller.cash_session_controller import CashSessionController, OperationResult
from caixapilot.client.cash_session_service import HttpCashSessionService
from caixapilot.core.connectivity import HttpConnectivityProbe
from caixapilot.core.drawer import drawer_from_settings
from caixapilot.core.errors import AppError
from caixapilot.core.kv_store import JsonFileKeyValueStore
from caixapilot.core.logging import bind_terminal_context, configure_logging, get_logger
from caixapilot.core.offline_cache import OfflineSessionRepository
from caixapilot.core.reconciliation import ReconciliationSummary
from caixapilot.core.settings import (
    API_URL,
    DEFAULT_TERMINAL_ID,
    OFFLINE_STORE_PATH,
    get_open_fallback_policy,
)
from caixapilot.models.enums import MovementType
from caixapilot.utils.datetime import to_local
from caixapilot.utils.formatters import format_currency, format_date, format_signed_currency

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="caixapilot-terminal",
        description="Abrir, movimentar e fechar o caixa de um terminal",
    )
    parser.add_argument("--company", required=True, help="ID da empresa")
    parser.add_argument("--user", required=True, help="ID do operador")
    parser.add_argument("--terminal", default=DEFAULT_TERMINAL_ID, help="ID do terminal")
    parser.add_argument("--api-url", default=API_URL, help="URL do servidor")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Mostrar o caixa atual")

    open_cmd = sub.add_parser("open", help="Abrir o caixa")
    open_cmd.add_argument("opening_balance", help="Saldo inicial (troco)")

    for kind in (MovementType.SANGRIA, MovementType.SUPRIMENTO):
        movement_cmd = sub.add_parser(kind.value, help=f"Registrar {kind.value}")
        movement_cmd.add_argument("amount", help="Valor")
        movement_cmd.add_argument("--description", default=None)

    close_cmd = sub.add_parser("close", help="Fechar o caixa")
    for method in ("dinheiro", "debito", "credito", "pix"):
        close_cmd.add_argument(f"--{method}", default="0", help=f"Valor contado em {method}")
    close_cmd.add_argument("--notes", default=None)

    return parser


def print_summary(summary: ReconciliationSummary) -> None:
    print(f"   Esperado em dinheiro: {format_currency(summary.expected_cash)}")
    print(f"   Total esperado:       {format_currency(summary.total_expected)}")
    print(f"   Total contado:        {format_currency(summary.total_counted)}")
    print(f"   Diferença:            {format_signed_currency(summary.difference)} ({summary.level.value})")


def print_result(result: OperationResult) -> None:
    marker = "⚠️ " if result.offline else "✅"
    print(f"\n{marker} {result.message}")
    if result.session is not None:
        print(f"   Sessão: {result.session.id}")
    if result.summary is not None:
        print_summary(result.summary)
    print()


async def run_command(args: argparse.Namespace) -> int:
    bind_terminal_context(args.company, args.terminal)

    async with HttpCashSessionService(base_url=args.api_url, terminal_id=args.terminal) as service:
        controller = CashSessionController(
            service=service,
            connectivity=HttpConnectivityProbe(base_url=args.api_url),
            offline_repository=OfflineSessionRepository(JsonFileKeyValueStore(OFFLINE_STORE_PATH)),
            drawer=drawer_from_settings(),
            company_id=args.company,
            user_id=args.user,
            terminal_id=args.terminal,
            fallback_policy=get_open_fallback_policy(),
        )
        state = await controller.load()

        if args.command == "status":
            if state.session is None:
                print("\nNenhum caixa aberto\n")
                return 0
            origin = "offline" if state.offline else "servidor"
            print(f"\nCaixa aberto ({origin}): {state.session.id}")
            print(f"   Aberto em: {format_date(to_local(state.session.opened_at))}")
            print_summary(controller.reconciliation())
            print()
            return 0

        if args.command == "open":
            result = await controller.open(args.opening_balance, terminal_id=args.terminal)
        elif args.command in (MovementType.SANGRIA.value, MovementType.SUPRIMENTO.value):
            result = await controller.register_movement(args.command, args.amount, args.description)
        else:
            counted = {
                "dinheiro": args.dinheiro,
                "debito": args.debito,
                "credito": args.credito,
                "pix": args.pix,
            }
            result = await controller.close(counted, notes=args.notes)

        await controller.wait_for_side_effects()
        print_result(result)
        return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging(console=True)
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        print("\n\n❌ Cancelado\n")
        return 1
    except AppError as e:
        logger.warning("terminal.command_failed", command=args.command, code=e.code)
        print(f"\n❌ {e.message}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
