# app/cli/run_sync.py
import asyncio
import logging
import click
from datetime import datetime

from app.core.enums import PlatformName
from app.core.exceptions import SyncError
from app.services.booking_sync_service import BookingSyncService

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Run booking syncs from the command line"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@cli.command("sync-platform")
@click.argument('villa_id', type=int)
@click.argument('platform', type=click.Choice([p.value for p in PlatformName]))
def sync_platform(villa_id, platform):
    """Sync one villa with one platform"""
    start_time = datetime.now()
    logger.info(f"Starting {platform} sync for villa {villa_id} at {start_time}")

    async def _run():
        service = BookingSyncService()
        try:
            return await service.sync_platform(villa_id, platform)
        finally:
            await service.sync_log.flush()

    try:
        result = asyncio.run(_run())
    except SyncError as e:
        raise click.ClickException(str(e))

    click.echo(f"\nSync {result.status} (run {result.run_id})")
    click.echo(f"New: {result.new_bookings}")
    click.echo(f"Updated: {result.updated_bookings}")
    click.echo(f"Unchanged: {result.unchanged_bookings}")
    click.echo(f"Conflicts: {len(result.conflicts)}")
    for error in result.errors:
        click.echo(f"  ! {error.kind}: {error.message}")
    logger.info(f"Completed sync in {datetime.now() - start_time}")


@cli.command("sync-all")
@click.argument('owner_id')
@click.option('--max-concurrent', type=int, default=None, help='Platforms synced at once')
def sync_all(owner_id, max_concurrent):
    """Sync every connected platform of every villa an owner has"""

    async def _run():
        service = BookingSyncService()
        try:
            return await service.sync_all(owner_id, max_concurrent=max_concurrent)
        finally:
            await service.sync_log.flush()

    result = asyncio.run(_run())

    click.echo(f"\nSync all {result.status}: {result.successful} ok, {result.partial} partial, "
               f"{result.failed} failed, {result.skipped} skipped")
    for detail in result.details:
        line = f"  villa {detail.villa_id} {detail.platform}: {detail.status}"
        if detail.message:
            line += f" ({detail.message})"
        click.echo(line)


if __name__ == "__main__":
    cli()
