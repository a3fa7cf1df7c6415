"""Models package - exports all SQLAlchemy models."""
# Catalogs
from estimator.models.material import Material
from estimator.models.product import Product

# Snapshots
from estimator.models.estimation import Estimation

__all__ = [
    'Material', 'Product',
    'Estimation',
]
