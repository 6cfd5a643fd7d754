from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .base import Base, new_id, now_utc


class Order(Base):
    __tablename__ = 'orders'
    id = Column(String(36), primary_key=True, default=new_id)
    order_number = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=False)
    city = Column(String(120), nullable=False)
    country = Column(String(120), nullable=False)
    postal_code = Column(String(30), nullable=False)
    payment_method = Column(String(50), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    # 'PENDING' | 'PROCESSING' | 'SHIPPED' | 'DELIVERED' | 'CANCELLED'
    status = Column(String(20), nullable=False, default='PENDING')
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_orders_created_at', 'created_at'),
        Index('idx_orders_user_id', 'user_id'),
    )


class OrderItem(Base):
    __tablename__ = 'order_items'
    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    image = Column(String(1000), nullable=True)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        Index('idx_order_items_order_id', 'order_id'),
    )
