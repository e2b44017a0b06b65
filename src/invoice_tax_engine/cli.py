"""Command-line interface for the invoice tax engine."""

import argparse
import asyncio
import json
import sys
from datetime import date
from datetime import datetime as dt
from decimal import Decimal
from pathlib import Path
from typing import Any

from invoice_tax_engine import __version__
from invoice_tax_engine.config import get_settings
from invoice_tax_engine.container import Container
from invoice_tax_engine.domain.documents import Expense, Invoice, MonetaryDocument
from invoice_tax_engine.domain.periods import FiscalPeriod, PeriodKey
from invoice_tax_engine.domain.value_objects import DeclarationPurpose
from invoice_tax_engine.exceptions import InvoiceEngineError, MissingProfileError
from invoice_tax_engine.logging_config import LogContext, configure_logging
from invoice_tax_engine.schemas import DocumentInput, WorkloadInput
from invoice_tax_engine.services.calculation import compute_item
from invoice_tax_engine.services.currency import apply_resolution


def _parse_date(value: str) -> date:
    return dt.strptime(value, "%Y-%m-%d").date()


def _read_workload(path: str) -> WorkloadInput:
    text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    return WorkloadInput.model_validate_json(text)


async def _load_documents(
    container: Container, workload: WorkloadInput, resolve_rates: bool
) -> tuple[list[Invoice], list[Expense]]:
    """Convert the workload to domain documents, fetching missing rates on request."""

    async def convert(schema: DocumentInput, document: MonetaryDocument) -> MonetaryDocument:
        if not (resolve_rates and schema.needs_rate(container.settings.local_currency)):
            return document
        resolution = await container.currency_service.resolve_rate(
            document.currency, document.issue_date
        )
        if resolution.warning:
            print(f"Warning: {document.number}: {resolution.warning}", file=sys.stderr)
        return apply_resolution(document, resolution)

    invoices = [await convert(s, s.to_domain()) for s in workload.invoices]
    expenses = [await convert(s, s.to_domain()) for s in workload.expenses]
    return invoices, expenses  # type: ignore[return-value]


def _period_row(period: FiscalPeriod) -> dict[str, Any]:
    return {
        "period": str(period.key),
        "total_income": f"{period.total_income:.2f}",
        "total_expenses": f"{period.total_expenses:.2f}",
        "estimated_tax": f"{period.estimated_tax:.2f}",
        "deadline_date": period.deadline_date.isoformat(),
        "status": period.status.value,
        "obligations": [
            {
                "kind": o.kind.value,
                "deadline_date": o.deadline_date.isoformat(),
                "status": o.status.value,
            }
            for o in period.obligations
        ],
    }


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"invoice-tax-engine {__version__}")
    return 0


def cmd_item(args: argparse.Namespace) -> int:
    """Compute net, VAT and gross for one line item."""
    try:
        values = compute_item(args.quantity, args.unit_price, args.vat_rate)
    except InvoiceEngineError as e:
        print(f"Error: {e.message}")
        return 1

    print(f"Net:   {values.net:.2f}")
    print(f"VAT:   {values.vat:.2f}")
    print(f"Gross: {values.gross:.2f}")
    return 0


def cmd_rate(args: argparse.Namespace) -> int:
    """Resolve the exchange rate for a document."""

    async def resolve() -> int:
        async with Container() as container:
            resolution = await container.currency_service.resolve_rate(
                args.currency, _parse_date(args.issue_date), override=args.manual
            )
        print(f"{resolution.pair}: {resolution.rate}")
        print(f"  Rate date: {resolution.rate_date.isoformat()}")
        print(f"  Source: {resolution.source.value}")
        if resolution.warning:
            print(f"  Warning: {resolution.warning}")
        return 0

    try:
        return asyncio.run(resolve())
    except InvoiceEngineError as e:
        print(f"Error: {e.message}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1


def cmd_tax(args: argparse.Namespace) -> int:
    """Estimate income tax for a taxable base."""
    container = Container()
    try:
        tax = container.tax_estimator.estimate_tax(
            Decimal(args.base),
            args.regime,
            lump_sum_rate=Decimal(args.lump_sum_rate) if args.lump_sum_rate else None,
            tax_card_amount=Decimal(args.tax_card_amount) if args.tax_card_amount else None,
        )
    except InvoiceEngineError as e:
        print(f"Error: {e.message}")
        return 1
    except ArithmeticError:
        print("Error: base, lump-sum rate and tax card amount must be numbers")
        return 1

    print(f"Estimated tax ({args.regime}): {tax:.2f}")
    return 0


def cmd_periods(args: argparse.Namespace) -> int:
    """Show monthly periods with estimated tax and filing status."""

    async def run() -> list[FiscalPeriod]:
        as_of = _parse_date(args.as_of) if args.as_of else date.today()
        workload = _read_workload(args.input)
        async with Container() as container:
            invoices, expenses = await _load_documents(container, workload, args.resolve_rates)
            profile = workload.profile.to_domain() if workload.profile else None
            return container.period_aggregator.build_periods(
                [*invoices, *expenses], profile, as_of
            )

    try:
        periods = asyncio.run(run())
    except (InvoiceEngineError, ValueError, OSError) as e:
        print(f"Error: {getattr(e, 'message', e)}")
        return 1

    if args.json:
        print(json.dumps([_period_row(p) for p in periods], indent=2))
        return 0

    print(f"{'Period':<9} {'Income':>12} {'Expenses':>12} {'Tax':>10}  {'Deadline':<10}  Status")
    print("-" * 70)
    for period in periods:
        print(
            f"{str(period.key):<9} {period.total_income:>12.2f} {period.total_expenses:>12.2f} "
            f"{period.estimated_tax:>10.2f}  {period.deadline_date.isoformat():<10}  "
            f"{period.status.value}"
        )
    return 0


def cmd_jpk(args: argparse.Namespace) -> int:
    """Generate the JPK_V7M file for one month."""
    purpose = DeclarationPurpose.CORRECTION if args.correction else DeclarationPurpose.SUBMISSION

    async def run() -> tuple[str, bytes] | None:
        workload = _read_workload(args.input)
        period = PeriodKey.parse(args.period)
        async with Container() as container:
            invoices, expenses = await _load_documents(container, workload, args.resolve_rates)
            profile = workload.profile.to_domain() if workload.profile else None
            with LogContext(period=str(period)):
                declaration = container.jpk_builder.build(
                    period, invoices, expenses, profile, purpose=purpose
                )
                if declaration is None:
                    return None
                serializer = container.jpk_serializer
                return serializer.file_name(declaration), serializer.serialize_bytes(declaration)

    try:
        result = asyncio.run(run())
    except (InvoiceEngineError, ValueError, OSError) as e:
        print(f"Error: {getattr(e, 'message', e)}")
        return 1

    if result is None:
        print(f"Error: {MissingProfileError().message}")
        return 1

    name, payload = result
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / name
    target.write_bytes(payload)
    print(f"Wrote {target} ({len(payload)} bytes)")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="ite",
        description="Invoice Tax Engine - invoice totals, income tax estimates and JPK_V7M files",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # item command
    item_parser = subparsers.add_parser("item", help="Compute a line item")
    item_parser.add_argument("quantity", help="Quantity")
    item_parser.add_argument("unit_price", help="Net unit price")
    item_parser.add_argument("vat_rate", help="VAT rate: 23, 8, 5, 0 or zw")
    item_parser.set_defaults(func=cmd_item)

    # rate command
    rate_parser = subparsers.add_parser("rate", help="Resolve an exchange rate")
    rate_parser.add_argument("currency", help="Currency code (e.g. EUR)")
    rate_parser.add_argument("issue_date", help="Document issue date (YYYY-MM-DD)")
    rate_parser.add_argument("--manual", default=None, help="Manual rate override")
    rate_parser.set_defaults(func=cmd_rate)

    # tax command
    tax_parser = subparsers.add_parser("tax", help="Estimate income tax")
    tax_parser.add_argument("base", help="Taxable base in PLN")
    tax_parser.add_argument(
        "--regime",
        required=True,
        choices=["progressive", "flat", "lump_sum", "tax_card"],
        help="Taxation regime",
    )
    tax_parser.add_argument("--lump-sum-rate", default=None, help="Lump-sum rate in percent")
    tax_parser.add_argument("--tax-card-amount", default=None, help="Tax card amount")
    tax_parser.set_defaults(func=cmd_tax)

    # periods command
    periods_parser = subparsers.add_parser("periods", help="List fiscal periods")
    periods_parser.add_argument("input", help="Workload JSON file ('-' for stdin)")
    periods_parser.add_argument("--as-of", default=None, help="Reference date (YYYY-MM-DD)")
    periods_parser.add_argument(
        "--resolve-rates", action="store_true", help="Fetch missing exchange rates"
    )
    periods_parser.add_argument("--json", action="store_true", help="Print JSON")
    periods_parser.set_defaults(func=cmd_periods)

    # jpk command
    jpk_parser = subparsers.add_parser("jpk", help="Generate a JPK_V7M file")
    jpk_parser.add_argument("input", help="Workload JSON file ('-' for stdin)")
    jpk_parser.add_argument("--period", required=True, help="Period (YYYY-MM)")
    jpk_parser.add_argument("--output-dir", default=".", help="Directory for the XML file")
    jpk_parser.add_argument("--correction", action="store_true", help="File a correction")
    jpk_parser.add_argument(
        "--resolve-rates", action="store_true", help="Fetch missing exchange rates"
    )
    jpk_parser.set_defaults(func=cmd_jpk)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    result: int = args.func(args)
    return result


def run() -> None:
    """Console script entry point."""
    configure_logging(get_settings())
    sys.exit(main())


if __name__ == "__main__":
    run()
