"""Estimation model for saved cost estimates."""
from sqlalchemy import Column, String, Numeric, DateTime, Text, JSON
from sqlalchemy.sql import func
from estimator.database import Base, BigIntPK


class Estimation(Base):
    """
    Estimation snapshot.

    Product name and every material line (name, unit, unit price, quantity,
    subtotal) are copied at save time, so the snapshot keeps its meaning
    after the catalogs change. There is no foreign key to
    product or material.

    `materials` is a JSON column. Rows written by older clients may hold a
    keyed mapping instead of a list; always read it through
    `services.reconciliation_service`.
    """

    __tablename__ = 'estimation'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=False)
    materials = Column(JSON, nullable=False, default=list)
    total_cost = Column(Numeric(20, 6), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_modified = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Estimation(id={self.id}, product='{self.product_name}', total={self.total_cost})>"

    def to_record(self):
        """Raw stored values, before reconciliation."""
        return {
            'id': str(self.id),
            'user_id': self.user_id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'materials': self.materials,
            'total_cost': self.total_cost,
            'notes': self.notes,
            'created_at': self.created_at,
            'last_modified': self.last_modified,
        }
