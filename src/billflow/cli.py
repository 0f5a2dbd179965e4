"""Command line interface for billflow."""

from __future__ import annotations

import json

import click

from .config import BaseConfig
from .domain.entries import (
    CreateTransactionRequest,
    StatusUpdate,
    TransactionFilters,
)
from .errors import BillflowError
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelTransactionRepository
from .logging_config import setup_logging
from .models.transaction import RecurrencePattern, TransactionStatus, TransactionType
from .services.transaction_engine import TransactionEngine

_DATE = click.DateTime(formats=["%Y-%m-%d"])


def build_engine(config: BaseConfig) -> TransactionEngine:
    """Wire the SQLModel repository into a transaction engine."""

    _engine, session_factory = bootstrap_database(config)
    return TransactionEngine(SQLModelTransactionRepository(session_factory))


def _format_entry(entry) -> str:
    amount = f"{entry.amount_in_cents / 100:,.2f}"
    due = f" due {entry.due_date.isoformat()}" if entry.due_date else ""
    marker = " (projected)" if entry.is_virtual else ""
    return (
        f"[{entry.id}] {entry.date.isoformat()} {entry.type.value:<11} "
        f"{entry.status.value:<9} {amount:>12}{due}  {entry.description}{marker}"
    )


def _echo_entries(entries) -> None:
    if not entries:
        click.echo("No transactions.")
        return
    for entry in entries:
        click.echo(_format_entry(entry))


@click.group()
@click.option("--user-id", type=int, default=1, show_default=True, help="Owner of the transactions")
@click.pass_context
def main(ctx: click.Context, user_id: int) -> None:
    """Track installments, recurring bills and their status."""

    config = BaseConfig()
    setup_logging(config)
    ctx.obj = {"config": config, "user_id": user_id}


def _engine(ctx: click.Context) -> TransactionEngine:
    if "engine" not in ctx.obj:
        ctx.obj["engine"] = build_engine(ctx.obj["config"])
    return ctx.obj["engine"]


@main.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database schema."""

    bootstrap_database(ctx.obj["config"])
    click.echo(f"Database ready: {ctx.obj['config'].DATABASE_URL}")


@main.command("add")
@click.option("--amount", "amount_in_cents", type=int, required=True, help="Amount in cents")
@click.option("--date", "txn_date", type=_DATE, required=True)
@click.option("--due-date", type=_DATE, default=None)
@click.option("--description", default="", show_default=True)
@click.option(
    "--type",
    "txn_type",
    type=click.Choice([t.value for t in TransactionType], case_sensitive=False),
    required=True,
)
@click.option("--installments", "total_installments", type=int, default=None)
@click.option(
    "--pattern",
    type=click.Choice([p.value for p in RecurrencePattern], case_sensitive=False),
    default=None,
)
@click.pass_context
def add(ctx, amount_in_cents, txn_date, due_date, description, txn_type, total_installments, pattern):
    """Create a transaction (an installment plan when --installments is given)."""

    request = CreateTransactionRequest(
        amount_in_cents=amount_in_cents,
        date=txn_date.date(),
        due_date=due_date.date() if due_date else None,
        description=description,
        type=txn_type,
        total_installments=total_installments,
        recurrence_pattern=pattern,
    )
    try:
        created = _engine(ctx).create(request, user_id=ctx.obj["user_id"])
    except BillflowError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(_format_entry(created))


@main.command("status")
@click.argument("transaction_id", type=int)
@click.argument(
    "status", type=click.Choice([s.value for s in TransactionStatus], case_sensitive=False)
)
@click.pass_context
def set_status(ctx, transaction_id: int, status: str) -> None:
    """Move a transaction to STATUS."""

    try:
        updated = _engine(ctx).update_status(
            transaction_id, user_id=ctx.obj["user_id"], update=StatusUpdate(status=status)
        )
    except BillflowError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(_format_entry(updated))


@main.command("list")
@click.option("--type", "types", default=None, help="Type or comma separated types")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TransactionStatus], case_sensitive=False),
    default=None,
)
@click.option("--start", type=_DATE, default=None)
@click.option("--end", type=_DATE, default=None)
@click.pass_context
def list_command(ctx, types, status, start, end) -> None:
    """List transactions; recurring ones are projected over --start/--end."""

    try:
        filters = TransactionFilters(
            type=types,
            status=status,
            start_date=start.date() if start else None,
            end_date=end.date() if end else None,
        )
        entries = _engine(ctx).list_transactions(user_id=ctx.obj["user_id"], filters=filters)
    except BillflowError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_entries(entries)


@main.command("plan")
@click.argument("plan_id", type=int)
@click.pass_context
def plan(ctx, plan_id: int) -> None:
    """Show the installments of an installment plan."""

    engine = _engine(ctx)
    try:
        parent = engine.get_installment_plan(plan_id, user_id=ctx.obj["user_id"])
        children = engine.list_installments(plan_id, user_id=ctx.obj["user_id"])
    except BillflowError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(_format_entry(parent))
    for child in children:
        click.echo("  " + _format_entry(child))


@main.command("overdue")
@click.pass_context
def overdue(ctx) -> None:
    """Pending expenses and installments past their due date."""

    _echo_entries(_engine(ctx).overdue(user_id=ctx.obj["user_id"]))


@main.command("upcoming")
@click.option("--days", type=int, default=None, help="Days ahead (defaults to config)")
@click.pass_context
def upcoming(ctx, days) -> None:
    """Pending expenses and installments due soon."""

    days_ahead = ctx.obj["config"].UPCOMING_DAYS if days is None else days
    try:
        entries = _engine(ctx).upcoming_due(user_id=ctx.obj["user_id"], days_ahead=days_ahead)
    except BillflowError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_entries(entries)


@main.command("summary")
@click.option("--start", type=_DATE, default=None)
@click.option("--end", type=_DATE, default=None)
@click.pass_context
def summary(ctx, start, end) -> None:
    """Print income/expense totals as JSON (amounts in cents)."""

    result = _engine(ctx).summary(
        user_id=ctx.obj["user_id"],
        start_date=start.date() if start else None,
        end_date=end.date() if end else None,
    )
    click.echo(json.dumps(result.as_dict(), indent=2))


if __name__ == "__main__":  # pragma: no cover
    main()
