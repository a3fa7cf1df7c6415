"""Product model."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from estimator.database import Base, BigIntPK


class Product(Base):
    """Product model."""

    __tablename__ = 'product'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id = Column(String(128), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    image_ref = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}')>"

    @property
    def image_url(self):
        """
        Get dynamic public URL for product image.

        Handles:
        1. Legacy full URLs (starts with http) - returns as is
        2. Object keys - joins with S3_PUBLIC_URL and bucket
        3. No image - returns None
        """
        if not self.image_ref:
            return None

        if self.image_ref.startswith(('http://', 'https://')):
            return self.image_ref

        from flask import current_app
        public_url = current_app.config.get('S3_PUBLIC_URL', 'http://localhost:9000')
        bucket = current_app.config.get('S3_BUCKET', 'uploads')

        # Ensure no double slashes when joining
        base = public_url.rstrip('/')
        collection = bucket.strip('/')
        path = self.image_ref.lstrip('/')

        return f"{base}/{collection}/{path}"

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'image_ref': self.image_ref,
            'image_url': self.image_url,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
