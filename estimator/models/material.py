"""Material model."""
from sqlalchemy import Column, String, Numeric, DateTime
from sqlalchemy.sql import func
from estimator.database import Base, BigIntPK


class Material(Base):
    """
    Raw material with a unit price.

    Materials are mutable in place and deleted unconditionally: saved
    estimations keep their own copy of name, unit and price.
    """

    __tablename__ = 'material'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id = Column(String(128), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    unit = Column(String(32), nullable=False)
    unit_price = Column(Numeric(14, 4), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    def __repr__(self):
        return f"<Material(id={self.id}, name='{self.name}', unit='{self.unit}', price={self.unit_price})>"

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'unit': self.unit,
            'unit_price': self.unit_price,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
