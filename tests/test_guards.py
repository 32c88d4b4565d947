import pytest

from ambuhub import crud, models, schemas
from ambuhub.errors import Forbidden, NotFoundOrForbidden, Unauthenticated
from ambuhub.guards import ensure_authenticated, ensure_owner, ensure_role
from ambuhub.sessions import SessionContext

VENDOR = SessionContext(token="t1", user_id=1, role=models.Role.vendor_user)
STANDARD = SessionContext(token="t2", user_id=2, role=models.Role.standard_user)


def test_ensure_authenticated():
    assert ensure_authenticated(VENDOR) is VENDOR
    with pytest.raises(Unauthenticated):
        ensure_authenticated(None)


@pytest.mark.parametrize("ctx", [VENDOR, STANDARD])
def test_ensure_role_passes_only_for_own_role(ctx):
    other = next(r for r in models.Role if r != ctx.role)
    assert ensure_role(ctx, ctx.role) is ctx
    with pytest.raises(Forbidden):
        ensure_role(ctx, other)


def test_ensure_owner(db_session, make_user):
    owner = make_user(email="o@example.com", role=models.Role.vendor_user)
    product = crud.create_product(
        db_session, owner.id, schemas.ProductCreate(name="Cart", description="d", price=1, stock=1)
    )
    assert ensure_owner(product, owner.id) is product
    with pytest.raises(NotFoundOrForbidden):
        ensure_owner(product, owner.id + 1)
    with pytest.raises(NotFoundOrForbidden):
        ensure_owner(None, owner.id)
