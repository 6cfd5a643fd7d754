from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from .base import Base, new_id, now_utc


class User(Base):
    __tablename__ = 'users'
    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    # 'USER' | 'ADMIN'
    role = Column(String(20), nullable=False, default='USER')
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    addresses = relationship("Address", back_populates="user")
    payment_methods = relationship("PaymentMethod", back_populates="user")
    orders = relationship("Order", back_populates="user")


class Address(Base):
    __tablename__ = 'addresses'
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=False)
    city = Column(String(120), nullable=False)
    country = Column(String(120), nullable=False)
    postal_code = Column(String(30), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    user = relationship("User", back_populates="addresses")

    __table_args__ = (
        Index('idx_addresses_user_id', 'user_id'),
    )


class PaymentMethod(Base):
    __tablename__ = 'payment_methods'
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(50), nullable=False)
    # Only the masked card number is stored
    card_number = Column(String(32), nullable=True)
    card_expiry = Column(String(10), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    user = relationship("User", back_populates="payment_methods")

    __table_args__ = (
        Index('idx_payment_methods_user_id', 'user_id'),
    )
