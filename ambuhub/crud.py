import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import dummy_verify, hash_password, verify_and_update
from .db import commit
from .errors import DuplicateEmail, InvalidCredentials, PersistenceError, UserNotFound
from .guards import ensure_owner
from .utils import normalize_email

logger = logging.getLogger(__name__)


# -------------------- Users --------------------

def create_user(db: Session, user: schemas.UserCreate, password_hash: Optional[str] = None) -> models.User:
    """Register a user. ``password_hash`` lets callers hash off the event loop."""
    # Explicit check for a nicer error; the unique constraint still guards races.
    if db.query(models.User.id).filter(models.User.email == user.email).first():
        raise DuplicateEmail()

    db_user = models.User(
        email=user.email,
        password_hash=password_hash or hash_password(user.password),
        role=user.role,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateEmail() from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database error while creating user: %s", e)
        raise PersistenceError() from e
    db.refresh(db_user)
    return db_user


def get_user_by_email(db: Session, email: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    if user is None:
        raise UserNotFound()
    return user


def update_password_hash(db: Session, user: models.User, password_hash: str) -> models.User:
    user.password_hash = password_hash
    db.add(user)
    commit(db, "upgrade a password hash")
    return user


def authenticate_user(db: Session, email: str, password: str) -> models.User:
    """Check a login attempt.

    An unknown email and a wrong password both raise InvalidCredentials, and the
    unknown-email path still spends a hash computation, so callers cannot tell
    which one happened. Hashes in a deprecated scheme are upgraded on success.
    """
    try:
        user = get_user_by_email(db, email)
    except UserNotFound:
        dummy_verify()
        raise InvalidCredentials() from None
    ok, new_hash = verify_and_update(password, user.password_hash)
    if not ok:
        raise InvalidCredentials()
    if new_hash:
        logger.info("Upgrading password hash for user %s", user.id)
        update_password_hash(db, user, new_hash)
    return user


# -------------------- Products --------------------

def create_product(db: Session, owner_id: int, product: schemas.ProductCreate, image_url: Optional[str] = None) -> models.Product:
    db_product = models.Product(
        name=product.name,
        description=product.description,
        price=product.price,
        stock=product.stock,
        image_url=image_url,
        owner_id=owner_id,
    )
    db.add(db_product)
    commit(db, "create a product")
    db.refresh(db_product)
    return db_product


def list_products(db: Session) -> List[models.Product]:
    return db.query(models.Product).order_by(models.Product.id).all()


def list_products_by_owner(db: Session, owner_id: int) -> List[models.Product]:
    return (
        db.query(models.Product)
        .filter(models.Product.owner_id == owner_id)
        .order_by(models.Product.id)
        .all()
    )


def update_product(
    db: Session,
    product_id: int,
    owner_id: int,
    fields: schemas.ProductCreate,
    image_url: Optional[str] = None,
) -> Tuple[models.Product, Optional[str]]:
    """Replace a product's fields; returns the product and the image URL it no longer uses.

    The image is only replaced when ``image_url`` is given.
    """
    product = ensure_owner(db.get(models.Product, product_id), owner_id)
    replaced_image = None
    product.name = fields.name
    product.description = fields.description
    product.price = fields.price
    product.stock = fields.stock
    if image_url is not None:
        replaced_image = product.image_url
        product.image_url = image_url
    db.add(product)
    commit(db, "update a product")
    db.refresh(product)
    return product, replaced_image


def delete_product(db: Session, product_id: int, owner_id: int) -> Optional[str]:
    """Delete a product and return its image URL so the file can be removed."""
    product = ensure_owner(db.get(models.Product, product_id), owner_id)
    image_url = product.image_url
    db.delete(product)
    commit(db, "delete a product")
    return image_url
