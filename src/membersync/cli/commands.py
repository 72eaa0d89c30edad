"""membersync sync commands - resync, sync-member, remove-member, cleanup, init-db."""

import asyncio
from typing import Any

import click
from rich.console import Console

from membersync.config.models import MemberSyncConfig
from membersync.core.errors import MemberSyncError
from membersync.store.database import Database
from membersync.sync.models import CleanupResult, MemberSyncResult, TenantSyncResult
from membersync.worker import HandleResult, SearchSyncMessageType, WorkerContext


def _run_message(config: MemberSyncConfig, message: dict[str, Any]) -> HandleResult:
    async def _run() -> HandleResult:
        async with WorkerContext(config) as worker:
            return await worker.handle(message)

    try:
        return asyncio.run(_run())
    except MemberSyncError as e:
        raise click.ClickException(str(e)) from e


@click.command()
@click.argument("tenant_id")
@click.option("--no-reset", is_flag=True, help="Resume the pending queue instead of requeuing all members")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Members per bulk write")
@click.pass_context
def resync_command(
    ctx: click.Context, tenant_id: str, no_reset: bool, batch_size: int | None
) -> None:
    """Resynchronize every member of TENANT_ID into the search index."""
    console = Console(stderr=True)
    message = {
        "type": SearchSyncMessageType.SYNC_TENANT_MEMBERS,
        "tenant_id": tenant_id,
        "reset": not no_reset,
        "batch_size": batch_size,
    }
    result = _run_message(ctx.obj["config"], message)
    assert isinstance(result, TenantSyncResult)
    console.print(
        f"[green]✓[/green] Synced {result.synced} member(s) of {tenant_id} "
        f"in {result.batches} batch(es) ({result.duration_ms / 1000:.2f}s)"
    )


@click.command()
@click.argument("member_id")
@click.pass_context
def sync_member_command(ctx: click.Context, member_id: str) -> None:
    """Synchronize a single member, removing it from the index if it no longer exists."""
    console = Console(stderr=True)
    message = {"type": SearchSyncMessageType.SYNC_MEMBER, "member_id": member_id}
    result = _run_message(ctx.obj["config"], message)
    assert isinstance(result, MemberSyncResult)
    console.print(
        f"[green]✓[/green] Member {member_id}: {result.state.value} "
        f"after {result.attempts} attempt(s)"
    )


@click.command()
@click.argument("member_id")
@click.pass_context
def remove_member_command(ctx: click.Context, member_id: str) -> None:
    """Remove a member document from the index."""
    console = Console(stderr=True)
    message = {"type": SearchSyncMessageType.REMOVE_MEMBER, "member_id": member_id}
    _run_message(ctx.obj["config"], message)
    console.print(f"[green]✓[/green] Removed {member_id} from the index")


@click.command()
@click.argument("tenant_id")
@click.pass_context
def cleanup_command(ctx: click.Context, tenant_id: str) -> None:
    """Remove index documents of TENANT_ID whose members no longer exist."""
    console = Console(stderr=True)
    message = {"type": SearchSyncMessageType.CLEANUP_TENANT_MEMBERS, "tenant_id": tenant_id}
    result = _run_message(ctx.obj["config"], message)
    assert isinstance(result, CleanupResult)
    console.print(
        f"[green]✓[/green] Checked {result.processed} document(s), "
        f"removed {len(result.removed)} orphan(s)"
    )


@click.command()
@click.pass_context
def init_db_command(ctx: click.Context) -> None:
    """Create the member store tables."""
    console = Console(stderr=True)
    config: MemberSyncConfig = ctx.obj["config"]
    db = Database(config.database.url, echo=config.database.echo)
    try:
        db.create_all()
    finally:
        db.dispose()
    console.print("[green]✓[/green] Member store tables created")
