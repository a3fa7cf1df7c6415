"""
Flask CLI commands for estimation data maintenance.

Commands:
- flask import-estimations FILE --user-id ID: import documents exported from the previous store
- flask normalize-estimations: rewrite stored materials into the list form
- flask list-estimations --user-id ID: print a user's estimations
"""

import json

import click
from sqlalchemy.exc import SQLAlchemyError

from estimator.database import get_session
from estimator.models import Estimation
from estimator.services import estimation_service
from estimator.services.reconciliation_service import (
    reconcile_estimation, materials_to_storage, parse_time_marker
)
from estimator.exceptions import EstimatorError
from estimator.utils.formatters import money, datetime_display


def _documents_from(payload):
    """Accept a list of documents or a mapping of document id -> document."""
    if isinstance(payload, list):
        return [doc for doc in payload if isinstance(doc, dict)]
    if isinstance(payload, dict):
        return [dict(doc, id=doc.get('id', key)) for key, doc in payload.items() if isinstance(doc, dict)]
    return []


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('import-estimations')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    @click.option('--user-id', default=None, help='Owner for documents without a userId')
    def import_estimations(path, user_id):
        """
        Import estimation documents from a JSON export.

        Materials and totals are stored as exported (list or keyed mapping);
        they are normalized whenever they are read.
        """
        with open(path, encoding='utf-8') as fh:
            documents = _documents_from(json.load(fh))

        session = get_session()
        imported = 0
        skipped = 0

        try:
            for doc in documents:
                owner = doc.get('userId') or doc.get('user_id') or user_id
                canonical = reconcile_estimation(doc)
                if not owner or not canonical['product_name']:
                    skipped += 1
                    click.echo(click.style(f"Skipped {doc.get('id')}: missing owner or product name", fg='yellow'))
                    continue

                estimation = Estimation(
                    user_id=str(owner),
                    product_id=canonical['product_id'] or '',
                    product_name=canonical['product_name'],
                    materials=doc.get('materials') or [],
                    total_cost=canonical['total_cost'],
                    notes=canonical['notes'],
                    last_modified=canonical['last_modified'],
                )
                created_at = parse_time_marker(doc.get('createdAt', doc.get('created_at')))
                if created_at is not None:
                    estimation.created_at = created_at
                session.add(estimation)
                imported += 1

            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            click.echo(click.style(f'Import failed, nothing was written: {e}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(f'Imported {imported} estimation(s), skipped {skipped}.', fg='green', bold=True))

    @app.cli.command('normalize-estimations')
    @click.option('--dry-run', is_flag=True, help='Only report what would change')
    def normalize_estimations(dry_run):
        """Rewrite every stored materials value into the canonical list form."""
        session = get_session()
        changed = 0

        try:
            for estimation in session.query(Estimation).order_by(Estimation.id).all():
                canonical = materials_to_storage(
                    reconcile_estimation({'materials': estimation.materials})['materials']
                )
                if canonical != estimation.materials:
                    changed += 1
                    if not dry_run:
                        estimation.materials = canonical

            if dry_run:
                session.rollback()
            else:
                session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            click.echo(click.style(f'Normalization failed, nothing was written: {e}', fg='red'))
            raise SystemExit(1)

        verb = 'would be normalized' if dry_run else 'normalized'
        click.echo(click.style(f'{changed} estimation(s) {verb}.', fg='green'))

    @app.cli.command('list-estimations')
    @click.option('--user-id', required=True, help='Owner of the estimations')
    def list_estimations(user_id):
        """Print a user's estimations, newest first."""
        try:
            estimations = estimation_service.list_estimations(get_session(), user_id)
        except EstimatorError as e:
            click.echo(click.style(e.message, fg='red'))
            raise SystemExit(1)

        if not estimations:
            click.echo('No estimations found.')
            return

        label = app.config.get('CURRENCY_LABEL')
        for est in estimations:
            click.echo(
                f"{est['id']:>6}  {datetime_display(est['created_at'])}  "
                f"{money(est['total_cost'], label):>16}  {est['product_name']}"
            )
