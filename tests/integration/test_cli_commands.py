"""
Integration tests for the estimation maintenance CLI.
"""

import json
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from estimator.models import Estimation
from estimator.services import estimation_service

LEGACY_EXPORT = {
    'legacy-1': {
        'userId': 'user-1',
        'productId': 'p-9',
        'productName': 'Stool',
        'totalCost': 35,
        'createdAt': {'_seconds': 1700000000, '_nanoseconds': 0},
        'materials': {
            '1': {'materialId': 'm2', 'name': 'Screw', 'qty': 20, 'unitPrice': 0.25, 'lineTotal': 5},
            '0': {'materialId': 'm1', 'name': 'Oak', 'qty': 3, 'unitPrice': 10, 'lineTotal': 30},
        },
    },
    'legacy-2': {
        'productName': 'Orphan',
        'materials': [],
    },
}


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / 'estimations.json'
    path.write_text(json.dumps(LEGACY_EXPORT), encoding='utf-8')
    return path


class TestImportEstimations:
    """Tests for flask import-estimations."""

    def test_import_keeps_stored_shape(self, runner, session, export_file):
        result = runner.invoke(args=['import-estimations', str(export_file)])

        assert result.exit_code == 0
        assert 'Imported 1 estimation(s), skipped 1.' in result.output

        stored = session.query(Estimation).one()
        assert stored.user_id == 'user-1'
        assert isinstance(stored.materials, dict)

        estimation = estimation_service.list_estimations(session, 'user-1')[0]
        assert estimation['product_name'] == 'Stool'
        assert [line['name'] for line in estimation['materials']] == ['Oak', 'Screw']
        assert estimation['total_cost'] == Decimal('35')
        assert estimation['created_at'] == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_default_owner(self, runner, session, export_file):
        result = runner.invoke(args=['import-estimations', str(export_file), '--user-id', 'user-7'])

        assert result.exit_code == 0
        assert 'Imported 2 estimation(s), skipped 0.' in result.output
        assert len(estimation_service.list_estimations(session, 'user-7')) == 1


class TestNormalizeEstimations:
    """Tests for flask normalize-estimations."""

    def test_rewrites_mapping_materials(self, runner, session, export_file):
        runner.invoke(args=['import-estimations', str(export_file)])
        before = estimation_service.list_estimations(session, 'user-1')[0]

        dry_run = runner.invoke(args=['normalize-estimations', '--dry-run'])
        assert '1 estimation(s) would be normalized.' in dry_run.output
        assert isinstance(session.query(Estimation).one().materials, dict)

        result = runner.invoke(args=['normalize-estimations'])
        assert result.exit_code == 0
        assert '1 estimation(s) normalized.' in result.output

        session.expire_all()
        stored = session.query(Estimation).one()
        assert isinstance(stored.materials, list)
        assert [line['name'] for line in stored.materials] == ['Oak', 'Screw']
        assert estimation_service.list_estimations(session, 'user-1')[0]['materials'] == before['materials']

        again = runner.invoke(args=['normalize-estimations'])
        assert '0 estimation(s) normalized.' in again.output


class TestListEstimations:
    """Tests for flask list-estimations."""

    def test_lists_owner_estimations(self, runner, session, export_file):
        runner.invoke(args=['import-estimations', str(export_file)])

        result = runner.invoke(args=['list-estimations', '--user-id', 'user-1'])

        assert result.exit_code == 0
        assert 'Stool' in result.output
        assert 'DT HT 35.00' in result.output or '35.00' in result.output

    def test_no_estimations(self, runner, session):
        result = runner.invoke(args=['list-estimations', '--user-id', 'nobody'])
        assert 'No estimations found.' in result.output
