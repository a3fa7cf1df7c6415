"""
Critical integration tests for owner isolation.
These tests ensure that catalogs and estimations are scoped to their owner.
"""

import pytest
from decimal import Decimal

from estimator.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from estimator.models import Estimation
from estimator.services import estimation_service, material_service, product_service


class TestCatalogIsolation:
    """Catalog records of another owner do not exist for the caller."""

    def test_materials_are_listed_per_owner(self, session, owner, other_owner, material, other_material):
        assert [m.id for m in material_service.list_materials(session, owner)] == [material.id]
        assert [m.id for m in material_service.list_materials(session, other_owner)] == [other_material.id]

    def test_foreign_material_not_found(self, session, owner, other_material):
        with pytest.raises(NotFoundError):
            material_service.get_material(session, owner, other_material.id)
        with pytest.raises(NotFoundError):
            material_service.update_material(session, owner, other_material.id, {'unit_price': 1})
        with pytest.raises(NotFoundError):
            material_service.delete_material(session, owner, other_material.id)

        assert material_service.get_material(session, 'user-2', other_material.id).unit_price == Decimal('7.50')

    def test_foreign_product_not_found(self, session, other_owner, product, storage):
        with pytest.raises(NotFoundError):
            product_service.get_product(session, other_owner, product.id)
        with pytest.raises(NotFoundError):
            product_service.delete_product(session, other_owner, product.id)

    def test_foreign_material_cannot_be_priced(self, session, owner, product, other_material):
        """The caller's catalog does not contain another owner's material."""
        catalog = material_service.list_materials(session, owner)

        with pytest.raises(ValidationError):
            estimation_service.save_estimation(
                session, owner, product.id, None,
                [{'material_id': str(other_material.id), 'quantity': 1}], catalog
            )


class TestEstimationIsolation:
    """Estimations are visible and mutable by their owner only."""

    @pytest.fixture
    def saved(self, session, owner, material, product):
        return estimation_service.save_estimation(
            session, owner, product.id, None,
            [{'material_id': str(material.id), 'quantity': 2}],
            material_service.list_materials(session, owner)
        )

    def test_listing_is_per_owner(self, session, owner, other_owner, saved):
        assert [est['id'] for est in estimation_service.list_estimations(session, owner)] == [saved['id']]
        assert estimation_service.list_estimations(session, other_owner) == []

    def test_foreign_estimation_refused(self, session, other_owner, saved):
        with pytest.raises(PermissionDeniedError):
            estimation_service.get_estimation(session, other_owner, saved['id'])
        with pytest.raises(PermissionDeniedError):
            estimation_service.delete_estimation(session, other_owner, saved['id'])

        assert session.query(Estimation).count() == 1

    def test_no_identity_refused(self, session, saved):
        with pytest.raises(PermissionDeniedError):
            estimation_service.get_estimation(session, None, saved['id'])
        with pytest.raises(PermissionDeniedError):
            estimation_service.update_estimation(session, '', saved['id'], {'notes': 'x'})

    def test_api_refuses_foreign_estimation(self, client, session, other_owner, saved):
        with client.session_transaction() as sess:
            sess['user_id'] = other_owner

        assert client.get(f"/estimations/{saved['id']}").status_code == 403
        assert client.delete(f"/estimations/{saved['id']}").status_code == 403
        assert client.get('/estimations/').get_json()['estimations'] == []
