import pytest

from helpers import make_business
from slotbook.core.errors import NotFoundError, ValidationFailedError
from slotbook.models.service import Service
from slotbook.services.business.business_service import BusinessService, TenantScope
from slotbook.services.business.catalog_service import CatalogService
from slotbook.utils.text_processing import is_valid_phone, normalize_phone, slugify


def test_signup_creates_owner_and_trial(db):
    business = BusinessService.create_business(
        db, business_name="Peluqueria Ñandú", owner_name="Lucia Gomez", owner_email="Lucia@Example.com",
        country_code="uy",
    )

    assert business.slug == "peluqueria-nandu"
    assert business.timezone == "America/Montevideo"
    assert business.country_code == "UY"
    assert business.trial_ends_at is not None

    staff = BusinessService.list_staff(db, business.tenant_id)
    assert [(m.role, m.user.email) for m in staff] == [("owner", "lucia@example.com")]


def test_signup_rejects_duplicates_and_bad_input(db):
    make_business(db)

    with pytest.raises(ValidationFailedError):
        make_business(db)
    with pytest.raises(ValidationFailedError):
        BusinessService.create_business(db, "Otro", "Ana", "ana@otro.test", slug="AB")
    with pytest.raises(ValidationFailedError):
        BusinessService.create_business(db, "Otro", "Ana", "ana@otro.test", slug="otro", timezone_name="Nowhere/City")


def test_unknown_business_is_not_found(db):
    with pytest.raises(NotFoundError):
        BusinessService.get_business(db, "not-a-uuid")
    with pytest.raises(NotFoundError):
        BusinessService.get_business_by_slug(db, "no-existe")


def test_tenant_scope_needs_tenant(db):
    with pytest.raises(ValueError):
        TenantScope(db, None)


def test_tenant_scope_filters_and_stamps(db):
    first = make_business(db)
    second = make_business(db, slug="otro-negocio")
    CatalogService.create_service(db, first.tenant_id, {"name": "Corte", "duration_min": 30})

    assert TenantScope(db, first.tenant_id).query(Service).count() == 1
    assert TenantScope(db, second.tenant_id).query(Service).count() == 0

    stamped = TenantScope(db, second.tenant_id).add(Service(name="Barba", duration_min=20))
    assert stamped.tenant_id == second.tenant_id
    db.rollback()


def test_staff_creation_and_lookup(db):
    business = make_business(db)
    membership = BusinessService.create_staff(db, business.tenant_id, "José Barbero")

    assert membership.user.email.startswith("jose-barbero.")
    assert BusinessService.get_staff_member(db, business.tenant_id, membership.user_id).role == "staff"

    other = make_business(db, slug="otro-negocio")
    with pytest.raises(NotFoundError):
        BusinessService.get_staff_member(db, other.tenant_id, membership.user_id)


def test_phone_helpers():
    assert normalize_phone("+54 9 (11) 5555-1234") == "5491155551234"
    assert is_valid_phone("+54 9 11 5555-1234")
    assert not is_valid_phone("1234567")
    assert not is_valid_phone("+54 11 abc 1234")
    assert not is_valid_phone("(((---)))")


def test_slugify():
    assert slugify("  Barbería   El Túnel! ") == "barberia-el-tunel"
    assert len(slugify("x" * 80)) == 50
