"""Seed script for demo users, a store and its catalogue."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from dreamsaver.api.routes.auth import hash_password
from dreamsaver.core.config import get_settings
from dreamsaver.db.session import SessionLocal, engine
from dreamsaver.models import Base, Product, Store, User, UserRole

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_USERS = [
    ("user-admin", "admin@demo.local", "Demo Admin", UserRole.ADMIN),
    ("user-seller", "seller@demo.local", "Demo Seller", UserRole.SELLER),
    ("user-customer", "customer@demo.local", "Demo Customer", UserRole.CUSTOMER),
]

SEED_PRODUCTS = [
    ("Road Bike", Decimal("85000.00")),
    ("Laptop", Decimal("150000.00")),
    ("Smartwatch", Decimal("25000.00")),
]


def seed(session: Session) -> None:
    """Seed demo admin/seller/customer users and the seller's products."""

    settings = get_settings()
    hashed = hash_password(settings.demo_user_password)

    existing_users = {user.email for user in session.scalars(select(User))}
    for user_id, email, name, role in SEED_USERS:
        if email in existing_users:
            logger.info("User %s already exists", email)
            continue
        session.add(User(id=user_id, email=email, name=name, role=role, hashed_password=hashed))
        logger.info("Added user %s", email)
    session.flush()

    store = session.scalar(select(Store).where(Store.user_id == "user-seller"))
    if store is None:
        store = Store(user_id="user-seller", name="Demo Outfitters")
        session.add(store)
        session.flush()
        logger.info("Created store %s", store.name)

    existing_products = {product.name for product in store.products}
    for name, price in SEED_PRODUCTS:
        if name in existing_products:
            continue
        session.add(Product(store_id=store.id, name=name, price=price))
        logger.info("Added product %s at %s", name, price)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)
        session.commit()


if __name__ == "__main__":
    main()
