"""
Unit tests for SQLAlchemy models and owner scoping helpers.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from estimator.exceptions import NotFoundError, PermissionDeniedError, ValidationError, TransientIOError
from estimator.models import Material, Product, Estimation
from estimator.services.ownership import require_identity, ensure_owner, parse_record_id


class TestMaterialModel:
    """Tests for Material model."""

    def test_create_material(self, session, owner):
        material = Material(owner_id=owner, name='Plywood', unit='sheet', unit_price=Decimal('12.5'))
        session.add(material)
        session.commit()

        assert material.id is not None
        assert material.created_at is not None
        assert material.unit_price == Decimal('12.5')

    def test_to_dict_renders_id_as_string(self, material):
        data = material.to_dict()
        assert data['id'] == str(material.id)
        assert data['name'] == 'Plywood'
        assert data['unit'] == 'kg'


class TestProductModel:
    """Tests for Product model."""

    def test_image_url_from_object_key(self, app, session, owner):
        product = Product(owner_id=owner, name='Chair', image_ref='products/user-1/1_chair.png')
        session.add(product)
        session.commit()

        base = app.config['S3_PUBLIC_URL'].rstrip('/')
        bucket = app.config['S3_BUCKET']
        assert product.image_url == f"{base}/{bucket}/products/user-1/1_chair.png"
        assert product.to_dict()['image_url'] == product.image_url

    def test_legacy_full_url_is_returned_as_is(self, session, owner):
        product = Product(owner_id=owner, name='Stool', image_ref='https://cdn.example.com/stool.png')
        assert product.image_url == 'https://cdn.example.com/stool.png'

    def test_no_image(self, product):
        assert product.image_url is None


class TestEstimationModel:
    """Tests for Estimation model."""

    def test_to_record_returns_raw_values(self, session, owner):
        estimation = Estimation(
            user_id=owner,
            product_id='1',
            product_name='Bookshelf',
            materials={'0': {'name': 'Plywood'}},
            total_cost=Decimal('25'),
        )
        session.add(estimation)
        session.commit()

        record = estimation.to_record()

        assert record['id'] == str(estimation.id)
        assert record['materials'] == {'0': {'name': 'Plywood'}}
        assert record['created_at'] is not None
        assert record['last_modified'] is None


class TestOwnership:
    """Tests for owner scoping helpers."""

    def test_require_identity(self):
        assert require_identity('user-1') == 'user-1'
        with pytest.raises(PermissionDeniedError):
            require_identity(None)
        with pytest.raises(PermissionDeniedError):
            require_identity('  ')

    def test_ensure_owner(self):
        record = SimpleNamespace(user_id='user-1')
        ensure_owner(record, 'user_id', 'user-1', 'Estimation')
        with pytest.raises(PermissionDeniedError):
            ensure_owner(record, 'user_id', 'user-2', 'Estimation')

    @pytest.mark.parametrize('value', ['abc', '', None, '0', '-4', '1.5'])
    def test_parse_record_id_rejects_foreign_identifiers(self, value):
        with pytest.raises(NotFoundError):
            parse_record_id(value, 'Estimation')

    def test_parse_record_id(self):
        assert parse_record_id(' 42 ', 'Estimation') == 42
        assert parse_record_id(7, 'Estimation') == 7


class TestExceptions:
    """Tests for the error hierarchy."""

    def test_status_codes(self):
        assert ValidationError('bad').status_code == 400
        assert PermissionDeniedError().status_code == 403
        assert NotFoundError().status_code == 404
        assert TransientIOError().status_code == 503

    def test_to_dict(self):
        error = ValidationError('Please select a product.', payload={'field': 'product_id'})
        assert error.to_dict() == {
            'field': 'product_id',
            'message': 'Please select a product.',
            'status': 'error',
        }
