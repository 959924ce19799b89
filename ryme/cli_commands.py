"""
Flask CLI commands.

Commands:
- flask init-db: create missing tables
- flask sweep-recycle-bin: permanently delete expired recycle bin entries
- flask sync-offline-queue: replay queued offline operations
"""

import click
from flask import current_app
from ryme.database import create_schema, get_session


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_schema()
        click.echo(click.style('Database schema ready.', fg='green'))

    @app.cli.command('sweep-recycle-bin')
    def sweep_recycle_bin():
        """Delete recycle bin entries whose expiry has passed."""
        from ryme.services.recycle_bin_service import sweep_expired

        removed = sweep_expired(get_session())
        click.echo(f'Removed {removed} expired entries.')

    @app.cli.command('sync-offline-queue')
    @click.option('--discard-head', is_flag=True, help='Drop the head entry before replaying')
    def sync_offline_queue(discard_head):
        """Replay the offline queue in order; stops at the first failure."""
        gate = current_app.extensions['gate']

        if discard_head:
            dropped = gate.queue.discard_head()
            if dropped:
                click.echo(f"Discarded #{dropped['id']} {dropped['method']} {dropped['path']}")

        summary = gate.replay()
        click.echo(f"Replayed {summary['replayed']}, pending {summary['remaining']}.")
        if summary['error']:
            click.echo(click.style(f"Halted: {summary['error']}", fg='red'))
            raise SystemExit(1)
