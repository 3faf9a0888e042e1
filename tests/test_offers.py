"""Tests for offers and product <-> offer assignment."""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from app.models.offer import Offer, ProductOffer
from app.services.exceptions import ConflictError
from app.services.offer_service import OfferService, discounted_price, lock_offer
from app.utils.clock import today


def offer_payload(**overrides):
    payload = {
        "name": "Summer sale",
        "description": "Everything cheaper",
        "discount_pct": "25",
        "start_date": "2000-01-01",
        "end_date": "2999-12-31",
    }
    payload.update(overrides)
    return payload


def links(read):
    return read(lambda tx: tx.scalar(select(func.count()).select_from(ProductOffer)))


def test_discounted_price():
    assert discounted_price(Decimal("100"), Decimal("25")) == Decimal("75.00")
    assert discounted_price(Decimal("9.99"), Decimal("15")) == Decimal("8.49")
    assert discounted_price(Decimal("10"), Decimal("100")) == Decimal("0.00")


def test_create_offer(client):
    response = client.post("/api/v1/ofertas/", json=offer_payload())

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Summer sale"
    assert Decimal(data["discount_pct"]) == Decimal("25")
    assert data["active"] is True


def test_create_offer_invalid_discount(client):
    assert client.post("/api/v1/ofertas/", json=offer_payload(discount_pct="0")).status_code == 400
    assert client.post("/api/v1/ofertas/", json=offer_payload(discount_pct="120")).status_code == 400


def test_create_offer_inverted_dates(client):
    response = client.post(
        "/api/v1/ofertas/",
        json=offer_payload(start_date="2030-02-01", end_date="2030-01-01")
    )

    assert response.status_code == 400
    assert "start date" in response.json()["message"]


def test_create_offer_duplicate_name(client):
    client.post("/api/v1/ofertas/", json=offer_payload())

    assert client.post("/api/v1/ofertas/", json=offer_payload()).status_code == 409


def test_list_offers_by_active_flag(client, make_offer):
    make_offer(active=True)
    make_offer(active=False)
    make_offer(active=True)

    data = client.get("/api/v1/ofertas/?active=true").json()

    assert data["total"] == 2
    assert all(item["active"] for item in data["items"])


def test_update_offer(client, make_offer):
    offer_id = make_offer(discount_pct="10")

    response = client.put(f"/api/v1/ofertas/{offer_id}", json={"discount_pct": "30", "active": False})

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["discount_pct"]) == Decimal("30")
    assert data["active"] is False


def test_update_offer_clears_description(client, make_offer):
    offer_id = make_offer(description="Weekend only")

    response = client.put(f"/api/v1/ofertas/{offer_id}", json={"description": None})

    assert response.status_code == 200
    assert response.json()["description"] is None
    assert client.get(f"/api/v1/ofertas/{offer_id}").json()["description"] is None


def test_update_offer_dates_checked_against_stored_values(client, make_offer):
    offer_id = make_offer(start_date=date(2030, 1, 1), end_date=date(2030, 1, 31))

    response = client.put(f"/api/v1/ofertas/{offer_id}", json={"end_date": "2029-12-31"})

    assert response.status_code == 400


def test_assign_product_twice(client, make_product, make_offer, read):
    """The second assignment is a conflict and leaves a single row."""
    product_id = make_product()
    offer_id = make_offer()
    payload = {"product_id": product_id, "offer_id": offer_id}

    first = client.post("/api/v1/producto-oferta/assign", json=payload)
    second = client.post("/api/v1/producto-oferta/assign", json=payload)

    assert first.status_code == 201
    assert first.json() == payload
    assert second.status_code == 409
    assert second.json()["message"] == "Product is already assigned to this offer"
    assert links(read) == 1


def test_assign_to_inactive_offer(client, make_product, make_offer, read):
    product_id = make_product()
    offer_id = make_offer(active=False)

    response = client.post(
        "/api/v1/producto-oferta/assign",
        json={"product_id": product_id, "offer_id": offer_id}
    )

    assert response.status_code == 400
    assert links(read) == 0


def test_assign_unknown_product_or_offer(client, make_product, make_offer):
    product_id = make_product()
    offer_id = make_offer()

    assert client.post(
        "/api/v1/producto-oferta/assign", json={"product_id": 999, "offer_id": offer_id}
    ).status_code == 404
    assert client.post(
        "/api/v1/producto-oferta/assign", json={"product_id": product_id, "offer_id": 999}
    ).status_code == 404


def test_unassign(client, make_product, make_offer, read):
    product_id = make_product()
    offer_id = make_offer()
    payload = {"product_id": product_id, "offer_id": offer_id}
    client.post("/api/v1/producto-oferta/assign", json=payload)

    assert client.post("/api/v1/producto-oferta/unassign", json=payload).status_code == 200
    assert links(read) == 0

    response = client.post("/api/v1/producto-oferta/unassign", json=payload)
    assert response.status_code == 404
    assert response.json()["message"] == "Product-offer association not found"


def test_delete_offer_with_assignments_is_refused(client, make_product, make_offer):
    product_id = make_product()
    offer_id = make_offer()
    client.post("/api/v1/producto-oferta/assign", json={"product_id": product_id, "offer_id": offer_id})

    response = client.delete(f"/api/v1/ofertas/{offer_id}")

    assert response.status_code == 409
    assert "1 assigned product" in response.json()["message"]
    assert client.get(f"/api/v1/ofertas/{offer_id}").status_code == 200


def test_delete_offer(client, make_offer):
    offer_id = make_offer()

    assert client.delete(f"/api/v1/ofertas/{offer_id}").status_code == 204
    assert client.get(f"/api/v1/ofertas/{offer_id}").status_code == 404


def test_lock_offer_selects_for_update_or_share():
    exclusive = str(lock_offer(1).compile(dialect=postgresql.dialect()))
    shared = str(lock_offer(1, shared=True).compile(dialect=postgresql.dialect()))

    assert exclusive.endswith("FOR UPDATE")
    assert shared.endswith("FOR SHARE")
    assert "ofertas" in shared


def test_offer_links_restrict_offer_delete():
    (fk,) = ProductOffer.__table__.c.offer_id.foreign_keys

    assert fk.ondelete == "RESTRICT"


def test_delete_refused_when_link_appears_after_count(coordinator, make_product, make_offer, read, monkeypatch):
    """The foreign key still blocks a delete whose assignment count is already stale."""
    product_id = make_product()
    offer_id = make_offer()
    coordinator.run(lambda tx: OfferService(tx).assign(product_id, offer_id))
    monkeypatch.setattr(OfferService, "assigned_count", lambda self, offer_id: 0)

    with pytest.raises(ConflictError, match="still has assigned products"):
        coordinator.run(lambda tx: OfferService(tx).delete(offer_id))

    assert links(read) == 1
    assert read(lambda tx: tx.get(Offer, offer_id).name) == "Offer 1"


def test_deactivation_keeps_assignments(client, make_product, make_offer, read):
    product_id = make_product()
    offer_id = make_offer()
    client.post("/api/v1/producto-oferta/assign", json={"product_id": product_id, "offer_id": offer_id})

    client.put(f"/api/v1/ofertas/{offer_id}", json={"active": False})

    assert links(read) == 1
    assert client.get(f"/api/v1/productos/{product_id}/ofertas-activas").json() == []


def test_active_offers_for_product(client, make_product, make_offer):
    """Offers in force today, deepest discount first, with discounted prices."""
    day = today()
    product_id = make_product(sale_price="100.00")
    small = make_offer(discount_pct="10")
    big = make_offer(discount_pct="25")
    expired = make_offer(
        discount_pct="50", start_date=day - timedelta(days=30), end_date=day - timedelta(days=1)
    )
    upcoming = make_offer(
        discount_pct="40", start_date=day + timedelta(days=1), end_date=day + timedelta(days=30)
    )
    for offer_id in (small, big, expired, upcoming):
        client.post("/api/v1/producto-oferta/assign", json={"product_id": product_id, "offer_id": offer_id})

    response = client.get(f"/api/v1/productos/{product_id}/ofertas-activas")

    assert response.status_code == 200
    offers = response.json()
    assert [o["offer_id"] for o in offers] == [big, small]
    assert Decimal(offers[0]["discounted_price"]) == Decimal("75.00")
    assert Decimal(offers[1]["discounted_price"]) == Decimal("90.00")


def test_active_offers_window_bounds_are_inclusive(coordinator, make_product, make_offer):
    product_id = make_product()
    offer_id = make_offer(start_date=date(2030, 5, 1), end_date=date(2030, 5, 31))
    coordinator.run(lambda tx: OfferService(tx).assign(product_id, offer_id))

    def in_force(day):
        offers = coordinator.run(lambda tx: OfferService(tx).active_offers_for(product_id, day))
        return [o.offer_id for o in offers]

    assert in_force(date(2030, 5, 1)) == [offer_id]
    assert in_force(date(2030, 5, 31)) == [offer_id]
    assert in_force(date(2030, 4, 30)) == []
    assert in_force(date(2030, 6, 1)) == []


def test_active_offers_unknown_product(client):
    assert client.get("/api/v1/productos/999/ofertas-activas").status_code == 404


def test_products_for_offer(client, make_product, make_offer):
    product_id = make_product(sale_price="40.00")
    offer_id = make_offer(discount_pct="50")
    client.post("/api/v1/producto-oferta/assign", json={"product_id": product_id, "offer_id": offer_id})

    response = client.get(f"/api/v1/ofertas/{offer_id}/productos")

    assert response.status_code == 200
    items = response.json()
    assert [p["product_id"] for p in items] == [product_id]
    assert Decimal(items[0]["discounted_price"]) == Decimal("20.00")


def test_deleting_product_drops_its_assignments(client, make_product, make_offer, read):
    product_id = make_product()
    offer_id = make_offer()
    client.post("/api/v1/producto-oferta/assign", json={"product_id": product_id, "offer_id": offer_id})

    client.delete(f"/api/v1/productos/{product_id}")

    assert links(read) == 0
