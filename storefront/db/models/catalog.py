from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, Numeric, String, Text

from .base import Base, new_id, now_utc


class Product(Base):
    __tablename__ = 'products'
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=True)
    discount = Column(Integer, nullable=True)
    is_on_sale = Column(Boolean, nullable=False, default=False)
    is_featured = Column(Boolean, nullable=False, default=False)
    stock = Column(Integer, nullable=False, default=0)
    category = Column(String(120), nullable=True)
    status = Column(String(20), nullable=False, default='active')
    images = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('idx_products_stock', 'stock'),
        Index('idx_products_category', 'category'),
    )
