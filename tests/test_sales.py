"""Tests for declaring items sold: reports, invoice numbers and wishlist cascade."""

from decimal import Decimal

import pytest

from boutique_hub.db_models import ActivityType, ItemStatus
from boutique_hub.db_models_ext import Checkout, WishlistStatus
from boutique_hub.errors import NotFound
from boutique_hub.services import ItemLifecycleEngine, SalesService
from boutique_hub.services.sales import recent_purchase_days
from boutique_hub.utils import utcnow
from conftest import assert_inventory_consistent

USER = "jovana"


def invoice(seq: int) -> str:
    return f"RID{utcnow().year % 100:02d}-{seq:05d}"


@pytest.fixture
def sales(db):
    return SalesService(db, USER)


class TestDeclareAsSold:
    @pytest.mark.asyncio
    async def test_sale_removes_item_and_writes_report(self, db, make, sales):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        await make.item(model, "Belgrade", "S2")

        report, activities = await sales.declare_as_sold("S1", comment="Paid by card")

        belgrade = model.boutique_for("Belgrade")
        assert [i.number for i in belgrade.items] == ["S2"]
        assert belgrade.quantity == 1
        assert report.ordinal == 1
        assert report.invoice_number == invoice(1)
        assert report.price == Decimal("1000")
        assert report.price_local == Decimal("118000")
        assert report.sold_by == USER
        assert report.item_snapshot["number"] == "S1"
        assert report.item_snapshot["basicInfo"]["collection"] == "Submariner"
        assert len(activities) == 1
        assert activities[0].type == ActivityType.sold.value
        assert activities[0].comment == f"Sold in Belgrade, invoice {invoice(1)}."
        assert activities[0].report_id == report.id
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_invoice_sequence(self, make, sales):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        await make.item(model, "Belgrade", "S2")

        first, _ = await sales.declare_as_sold("S1")
        second, _ = await sales.declare_as_sold("S2")

        assert (first.ordinal, second.ordinal) == (1, 2)
        assert (first.invoice_number, second.invoice_number) == (invoice(1), invoice(2))

    @pytest.mark.asyncio
    async def test_checkout_ordinal_takes_precedence(self, db, make, sales):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        belgrade = await make.products.get_store("Belgrade")
        db.add(Checkout(store_id=belgrade.id, year=utcnow().year, ordinal=41))
        db.add(Checkout(store_id=belgrade.id, year=utcnow().year - 1, ordinal=900))
        await db.flush()

        report, _ = await sales.declare_as_sold("S1")
        assert report.invoice_number == invoice(42)

    @pytest.mark.asyncio
    async def test_non_invoicing_store(self, make, sales):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Budva", "S1")

        report, activities = await sales.declare_as_sold("S1", price=Decimal("950"))

        assert report.invoice_number is None
        assert report.ordinal == 1
        assert report.price == Decimal("950")
        assert report.price_local == Decimal("950")
        assert activities[0].comment == "Sold in Budva."

    @pytest.mark.asyncio
    async def test_ordinals_are_per_store(self, make, sales):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        await make.item(model, "Budva", "S2")
        await sales.declare_as_sold("S1")
        report, _ = await sales.declare_as_sold("S2")
        assert report.ordinal == 1

    @pytest.mark.asyncio
    async def test_unknown_serial(self, sales):
        with pytest.raises(NotFound):
            await sales.declare_as_sold("NOPE")

    @pytest.mark.asyncio
    async def test_lifecycle_engine_delegates(self, db, make):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Porto Montenegro", "S1")
        report, _ = await ItemLifecycleEngine(db, USER).declare_as_sold("S1")
        assert report.store.name == "Porto Montenegro"
        assert model.boutique_for("Porto Montenegro").quantity == 0


class TestWishlistCascade:
    """Selling a reserved item closes or pauses the client's wishlists."""

    @pytest.mark.asyncio
    async def test_cascade(self, make, sales):
        model = await make.model("M126610LN-0001", collection="Submariner")
        client = await make.client("Ana Petrovic")
        await make.item(model, "Belgrade", "S1", status=ItemStatus.reserved, reserved_for=client.id)
        same = await make.wishlist(client, "M126610LN-0001", collection="Submariner")
        other = await make.wishlist(client, "M126500LN-0001", collection="Cosmograph Daytona")

        report, activities = await sales.declare_as_sold("S1")

        assert report.client_id == client.id
        assert same.status == WishlistStatus.watch_sold
        assert other.status == WishlistStatus.recent_purchase
        assert (other.valid_until - report.sold_at).days == 180
        assert [a.type for a in activities] == [
            ActivityType.sold.value, ActivityType.wishlist.value, ActivityType.wishlist.value,
        ]
        assert activities[1].wishlist_id == same.id
        assert activities[1].comment == "Wishlist for M126610LN-0001 closed, watch sold."

    @pytest.mark.asyncio
    async def test_inactive_wishlists_are_left_alone(self, make, sales):
        model = await make.model("M126610LN-0001")
        client = await make.client()
        await make.item(model, "Belgrade", "S1", status=ItemStatus.reserved, reserved_for=client.id)
        cancelled = await make.wishlist(client, "M126610LN-0001", status=WishlistStatus.cancelled)

        _, activities = await sales.declare_as_sold("S1")

        assert cancelled.status == WishlistStatus.cancelled
        assert len(activities) == 1

    @pytest.mark.asyncio
    async def test_unreserved_item_has_no_cascade(self, make, sales):
        model = await make.model("M126610LN-0001")
        client = await make.client()
        await make.item(model, "Belgrade", "S1")
        wish = await make.wishlist(client, "M126610LN-0001")

        _, activities = await sales.declare_as_sold("S1")

        assert wish.status == WishlistStatus.active
        assert len(activities) == 1


class TestRecentPurchaseWindow:
    @pytest.mark.parametrize("sold,wished,days", [
        ("Submariner", "Submariner", 365),
        ("Submariner", "GMT-Master II", 270),
        ("Cosmograph Daytona", "Datejust", 90),
        ("Submariner", "Unknown", 90),
    ])
    def test_window(self, sold, wished, days):
        assert recent_purchase_days(sold, wished) == days
