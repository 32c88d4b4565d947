"""Route guards.

``require_authenticated`` and ``require_role`` are independent FastAPI
dependencies; ``require_role`` builds on ``require_authenticated`` so a route
declaring it gets both checks in order. ``ensure_owner`` is the single ownership
predicate shared by every product mutation.
"""
import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from . import models, sessions
from .config import get_settings
from .db import get_db
from .errors import Forbidden, NotFoundOrForbidden, Unauthenticated
from .sessions import SessionContext

logger = logging.getLogger(__name__)


def get_session_context(request: Request, db: Session = Depends(get_db)) -> Optional[SessionContext]:
    token = request.cookies.get(get_settings().session_cookie_name)
    return sessions.read(db, token)


def ensure_authenticated(ctx: Optional[SessionContext]) -> SessionContext:
    if ctx is None:
        raise Unauthenticated()
    return ctx


def ensure_role(ctx: SessionContext, expected: models.Role) -> SessionContext:
    if ctx.role != expected:
        logger.warning("User %s with role %s denied, %s required", ctx.user_id, ctx.role.value, expected.value)
        raise Forbidden()
    return ctx


def ensure_owner(product: Optional[models.Product], user_id: int) -> models.Product:
    # a missing product and someone else's product are reported the same way
    if product is None or product.owner_id != user_id:
        if product is not None:
            logger.warning("User %s denied access to product %s", user_id, product.id)
        raise NotFoundOrForbidden()
    return product


def require_authenticated(ctx: Optional[SessionContext] = Depends(get_session_context)) -> SessionContext:
    return ensure_authenticated(ctx)


def require_role(expected: models.Role):
    def dependency(ctx: SessionContext = Depends(require_authenticated)) -> SessionContext:
        return ensure_role(ctx, expected)

    dependency.__name__ = f"require_{expected.value}"
    return dependency
