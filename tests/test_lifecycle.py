"""Tests for item lifecycle: edits, moves, part exchange and stock intake."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from boutique_hub.adapters.brand_schemas import SOON_IN_STOCK_HEADERS, STOCK_HEADERS
from boutique_hub.adapters.row_mapper import map_soon_in_stock_rows, map_stock_rows
from boutique_hub.db_models import Activity, ActivityType, Brand, ItemStatus, SoonInStock
from boutique_hub.db_models_ext import Shipment
from boutique_hub.errors import (
    MissingExGenevaPrice, MissingInvoiceNumber, MissingParameters,
    MissingStatus, NotAcceptable, NotFound,
)
from boutique_hub.services import ActivityLog, ItemLifecycleEngine
from conftest import assert_inventory_consistent, sheet

USER = "milica"


@pytest.fixture
def engine(db):
    return ItemLifecycleEngine(db, USER)


async def activity_count(db):
    return (await db.execute(select(func.count(Activity.id)))).scalar()


class TestEditItem:
    """Status and reservation edits produce one narrated activity per call."""

    @pytest.mark.asyncio
    async def test_reserve_requires_client(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")

        with pytest.raises(MissingParameters):
            await engine.edit_item("S1", {"status": ItemStatus.reserved})
        assert await activity_count(db) == 0

    @pytest.mark.asyncio
    async def test_reserve_unknown_client(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        with pytest.raises(NotFound):
            await engine.edit_item("S1", {"status": ItemStatus.reserved, "reserved_for": 999})

    @pytest.mark.asyncio
    async def test_reserve(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        client = await make.client("Ana Petrovic")

        _, _, item, activity = await engine.edit_item(
            "S1", {"status": ItemStatus.reserved, "reserved_for": client.id},
        )

        assert item.status == ItemStatus.reserved
        assert item.previous_status == ItemStatus.stock
        assert item.reserved_for == client.id
        assert item.reservation_time is not None
        assert activity.type == ActivityType.status_change.value
        assert activity.user == USER
        assert activity.client_id == client.id
        assert activity.comment.startswith("Status changed from Stock to Reserved. Reserved for Ana Petrovic.")
        assert "Reservation time set to" in activity.comment

    @pytest.mark.asyncio
    async def test_confirm_reservation_keeps_previous_status(self, make, engine):
        model = await make.model("M126610LN-0001")
        client = await make.client("Ana Petrovic")
        await make.item(
            model, "Belgrade", "S1", status=ItemStatus.pre_reserved,
            reserved_for=client.id, reservation_time=datetime(2024, 2, 1, 12, 0),
        )

        _, _, item, activity = await engine.edit_item("S1", {"status": ItemStatus.reserved})

        assert item.status == ItemStatus.reserved
        assert item.previous_status is None
        assert item.reservation_time == datetime(2024, 2, 1, 12, 0)
        assert activity.comment == "Reservation for Ana Petrovic confirmed."

    @pytest.mark.asyncio
    async def test_leaving_reserved_clears_reservation(self, make, engine):
        model = await make.model("M126610LN-0001")
        client = await make.client("Ana Petrovic")
        await make.item(
            model, "Belgrade", "S1", status=ItemStatus.reserved,
            reserved_for=client.id, reservation_time=datetime(2024, 2, 1, 12, 0),
        )

        _, _, item, activity = await engine.edit_item("S1", {"status": ItemStatus.stock})

        assert item.reserved_for is None
        assert item.reservation_time is None
        assert item.previous_status == ItemStatus.reserved
        assert activity.comment == (
            "Status changed from Reserved to Stock. "
            "Reservation for Ana Petrovic cancelled. "
            "Reservation time cleared."
        )

    @pytest.mark.asyncio
    async def test_several_fields_make_one_activity(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")

        _, _, _, activity = await engine.edit_item(
            "S1", {"location": "Window 2", "comment": "Strap polished", "adjusted_size": "18"},
        )

        assert await activity_count(db) == 1
        assert activity.comment == (
            "Location changed from Safe to Window 2. "
            "Comment changed from empty to Strap polished. "
            "Adjusted size changed from empty to 18."
        )

    @pytest.mark.asyncio
    async def test_no_change_records_nothing(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        _, _, _, activity = await engine.edit_item("S1", {"location": "Safe"})
        assert activity is None
        assert await activity_count(db) == 0

    @pytest.mark.asyncio
    async def test_empty_status(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        with pytest.raises(MissingStatus):
            await engine.edit_item("S1", {"status": None})

    @pytest.mark.asyncio
    async def test_unknown_field(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        with pytest.raises(NotAcceptable):
            await engine.edit_item("S1", {"number": "S2"})

    @pytest.mark.asyncio
    async def test_unknown_serial(self, engine):
        with pytest.raises(NotFound):
            await engine.edit_item("NOPE", {"location": "Safe"})


class TestMoves:
    @pytest.mark.asyncio
    async def test_same_store_is_rejected_without_mutation(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")

        with pytest.raises(NotAcceptable):
            await engine.change_store("S1", "Belgrade")

        belgrade = model.boutique_for("Belgrade")
        assert [i.number for i in belgrade.items] == ["S1"]
        assert belgrade.quantity == 1
        assert belgrade.items[0].origin is None
        assert await activity_count(db) == 0

    @pytest.mark.asyncio
    async def test_change_store(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        await make.item(model, "Belgrade", "S2")

        _, dest, item, activity = await engine.change_store("S1", "Budva")

        assert dest.store_name == "Budva"
        assert item.origin == "Belgrade"
        assert model.boutique_for("Belgrade").quantity == 1
        assert model.boutique_for("Budva").quantity == 1
        assert activity.comment == "Store changed from Belgrade to Budva."
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_change_store_unknown_store(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "S1")
        with pytest.raises(NotFound):
            await engine.change_store("S1", "Zagreb")
        assert model.boutique_for("Belgrade").quantity == 1

    @pytest.mark.asyncio
    async def test_change_rmc_migrates_activities(self, db, make, engine):
        old = await make.model("M126610LN-0001")
        new = await make.model("M126610LV-0002")
        await make.item(old, "Budva", "S1")
        await engine.edit_item("S1", {"location": "Window"})

        target, dest, item, activity = await engine.change_rmc("S1", "M126610LV-0002")

        assert target.id == new.id
        assert dest.store_name == "Budva"
        assert old.boutique_for("Budva").quantity == 0
        assert new.boutique_for("Budva").quantity == 1
        assert activity.comment == "RMC changed from M126610LN-0001 to M126610LV-0002."
        history = await ActivityLog(db).find_by_product_and_serial(new.id, "S1")
        assert len(history) == 2
        assert await ActivityLog(db).find_by_product_and_serial(old.id, "S1") == []
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_change_rmc_to_same_model(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Budva", "S1")
        with pytest.raises(NotAcceptable):
            await engine.change_rmc("S1", "M126610LN-0001")

    @pytest.mark.asyncio
    async def test_change_rmc_other_brand_is_not_found(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.model("M79000-0001", brand=Brand.tudor)
        await make.item(model, "Budva", "S1")
        with pytest.raises(NotFound):
            await engine.change_rmc("S1", "M79000-0001")


class TestExchangeParts:
    """Two items of one family swap dials and/or bracelets."""

    async def _family(self, make):
        meteorite = await make.model(
            "M116769-MET", saleReference="116769TBR", dial="Meteorite", bracelet="Oyster",
        )
        black = await make.model(
            "M116769-BLK", saleReference="116769TBR", dial="Black", bracelet="Oyster",
        )
        return meteorite, black

    @pytest.mark.asyncio
    async def test_swap_dials_in_one_store(self, db, make, engine):
        meteorite, black = await self._family(make)
        await make.item(meteorite, "Belgrade", "S1")
        await make.item(black, "Belgrade", "S2")

        plan = await engine.exchange_parts(Brand.rolex, "M116769-MET", "Belgrade", dial="Black", save=True)

        assert plan["desired"]["rmc"] == "M116769-BLK"
        assert plan["byproduct"]["rmc"] == "M116769-MET"
        assert [i.number for i in black.boutique_for("Belgrade").items] == ["S1"]
        assert [i.number for i in meteorite.boutique_for("Belgrade").items] == ["S2"]
        for item in (black.boutique_for("Belgrade").items[0], meteorite.boutique_for("Belgrade").items[0]):
            assert item.modified is True
            assert item.modified_by == USER
            assert item.modification_date is not None
        s1 = await ActivityLog(db).find_by_serial("S1")
        assert s1[0].type == ActivityType.part_exchange.value
        assert s1[0].comment == "Exchanged dial with S2. RMC changed from M116769-MET to M116769-BLK."
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_plan_without_save_writes_nothing(self, db, make, engine):
        meteorite, black = await self._family(make)
        await make.item(meteorite, "Belgrade", "S1")
        await make.item(black, "Belgrade", "S2")

        plan = await engine.exchange_parts(Brand.rolex, "M116769-MET", "Belgrade", dial="Black")

        assert plan["saved"] is False
        assert plan["source"]["serialNumber"] == "S1"
        assert plan["other"]["serialNumber"] == "S2"
        assert [i.number for i in meteorite.boutique_for("Belgrade").items] == ["S1"]
        assert meteorite.boutique_for("Belgrade").items[0].modified is False
        assert await activity_count(db) == 0

    @pytest.mark.asyncio
    async def test_earliest_stocked_candidate_wins(self, make, engine):
        meteorite, black = await self._family(make)
        await make.item(meteorite, "Belgrade", "S1")
        await make.item(black, "Budva", "LATE", stock_date=datetime(2024, 6, 1))
        await make.item(black, "Budva", "EARLY", stock_date=datetime(2023, 6, 1))

        plan = await engine.exchange_parts(
            Brand.rolex, "M116769-MET", "Belgrade", dial="Black", other_store="Budva",
        )
        assert plan["other"] == {"serialNumber": "EARLY", "rmc": "M116769-BLK", "store": "Budva"}

    @pytest.mark.asyncio
    async def test_swap_across_stores_keeps_each_item_in_its_store(self, db, make, engine):
        meteorite, black = await self._family(make)
        await make.item(meteorite, "Belgrade", "S1")
        await make.item(black, "Budva", "S2")

        plan = await engine.exchange_parts(
            Brand.rolex, "M116769-MET", "Belgrade", dial="Black", other_store="Budva", save=True,
        )

        assert plan["other"]["store"] == "Budva"
        assert [i.number for i in black.boutique_for("Belgrade").items] == ["S1"]
        assert [i.number for i in meteorite.boutique_for("Budva").items] == ["S2"]
        assert meteorite.boutique_for("Belgrade").quantity == 0
        assert black.boutique_for("Budva").quantity == 0
        assert black.boutique_for("Belgrade").items[0].modified is True
        assert meteorite.boutique_for("Budva").items[0].modified is True
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_missing_combination_creates_hybrid_models(self, db, make, engine):
        meteorite = await make.model(
            "M116769-MET", saleReference="116769TBR", dial="Meteorite", bracelet="Oyster",
        )
        jubilee = await make.model(
            "M116769-BJU", saleReference="116769TBR", dial="Black", bracelet="Jubilee",
        )
        await make.item(meteorite, "Belgrade", "S1")
        await make.item(jubilee, "Belgrade", "S2")

        plan = await engine.exchange_parts(Brand.rolex, "M116769-MET", "Belgrade", bracelet="Jubilee", save=True)

        assert plan["desired"]["rmc"] == "116769TBR|Meteorite|Jubilee"
        assert plan["byproduct"]["rmc"] == "116769TBR|Black|Oyster"
        hybrid = await make.products.get_by_identity(Brand.rolex, "116769TBR|Meteorite|Jubilee")
        assert hybrid.basic_info["hybrid"] is True
        assert hybrid.boutique_for("Belgrade").price == Decimal("1000")
        assert [i.number for i in hybrid.boutique_for("Belgrade").items] == ["S1"]
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_no_compatible_item(self, make, engine):
        meteorite, _ = await self._family(make)
        await make.item(meteorite, "Belgrade", "S1")
        with pytest.raises(NotFound):
            await engine.exchange_parts(Brand.rolex, "M116769-MET", "Belgrade", dial="Black")

    @pytest.mark.asyncio
    async def test_requires_a_part(self, engine):
        with pytest.raises(MissingParameters):
            await engine.exchange_parts(Brand.rolex, "M116769-MET", "Belgrade")


class TestImportStock:
    def _rows(self, *rows):
        defaults = {
            "Brand": "Rolex", "RMC": "M126610LN-0001", "Boutique": "Belgrade",
            "Status": "Stock", "Location": "Safe", "Stock date": "12.03.2024", "Comment": None,
        }
        out = []
        for r in rows:
            values = {**defaults, **r}
            out.append([values[h] for h in STOCK_HEADERS])
        return map_stock_rows(sheet(STOCK_HEADERS, out))

    @pytest.mark.asyncio
    async def test_import_adds_items_and_activities(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        items = await engine.import_stock(self._rows(
            {"Serial number": "A1"}, {"Serial number": "A2", "Boutique": "Budva"},
        ))

        assert [i.number for i in items] == ["A1", "A2"]
        assert model.boutique_for("Belgrade").quantity == 1
        assert model.boutique_for("Budva").quantity == 1
        history = await ActivityLog(db).find_by_serial("A1")
        assert history[0].comment == "Imported into Belgrade with status Stock."
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_reimport_same_rows_is_absorbed(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        rows = self._rows({"Serial number": "A1"})
        await engine.import_stock(rows)
        assert await engine.import_stock(self._rows({"Serial number": "A1"})) == []
        assert model.boutique_for("Belgrade").quantity == 1
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_serial_in_another_store_rejects_whole_sheet(self, db, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Budva", "A1")

        with pytest.raises(NotAcceptable):
            await engine.import_stock(self._rows({"Serial number": "NEW"}, {"Serial number": "A1"}))

        assert model.boutique_for("Belgrade").quantity == 0
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_unknown_model_rejects_whole_sheet(self, make, engine):
        model = await make.model("M126610LN-0001")
        with pytest.raises(NotFound):
            await engine.import_stock(self._rows(
                {"Serial number": "A1"}, {"Serial number": "A2", "RMC": "M000000-0000"},
            ))
        assert model.boutique_for("Belgrade").quantity == 0

    @pytest.mark.asyncio
    async def test_reserved_rows_are_rejected(self, make, engine):
        await make.model("M126610LN-0001")
        with pytest.raises(MissingParameters):
            await engine.import_stock(self._rows({"Serial number": "A1", "Status": "Reserved"}))


class TestSoonInStock:
    def _rows(self, *rows):
        defaults = {
            "Brand": "rolex", "RMC": "M126610LN-0001", "Boutique": "Budva",
            "Sold-to party": "Boutique Budva", "Invoice number": "90012345",
            "Invoice date": "2024-03-01", "Shipment date": "2024-03-04",
            "Ex-Geneva price": 7300, "Status": None, "Comment": None,
        }
        out = []
        for r in rows:
            values = {**defaults, **r}
            out.append([values[h] for h in SOON_IN_STOCK_HEADERS])
        return map_soon_in_stock_rows(sheet(SOON_IN_STOCK_HEADERS, out))

    @pytest.mark.asyncio
    async def test_import_creates_pending_records(self, db, make, engine):
        await make.model("M126610LN-0001")
        records = await engine.import_soon_in_stock(self._rows({"Serial number": "P1"}))

        record = records[0]
        assert record.status == ItemStatus.new_stock
        assert record.location == "Safe"
        assert record.store.name == "Budva"
        history = await ActivityLog(db).find_by_serial("P1")
        assert history[0].comment == "Expected in Budva, shipped 04.03.2024."

    @pytest.mark.asyncio
    async def test_pending_serial_is_rejected(self, make, engine):
        await make.model("M126610LN-0001")
        await engine.import_soon_in_stock(self._rows({"Serial number": "P1"}))
        with pytest.raises(NotAcceptable):
            await engine.import_soon_in_stock(self._rows({"Serial number": "P1"}))

    @pytest.mark.asyncio
    async def test_serial_in_stock_is_rejected(self, make, engine):
        model = await make.model("M126610LN-0001")
        await make.item(model, "Belgrade", "P1")
        with pytest.raises(NotAcceptable):
            await engine.import_soon_in_stock(self._rows({"Serial number": "P1"}))

    @pytest.mark.asyncio
    async def test_edit_pending_record(self, make, engine):
        model = await make.model("M126610LN-0001")
        client = await make.client("Marko Jovanovic")
        record = await make.soon(model, "Budva", "P1")

        record, activity = await engine.edit_soon_in_stock(
            record.id, {"status": ItemStatus.pre_reserved, "reserved_for": client.id},
        )

        assert record.status == ItemStatus.pre_reserved
        assert record.previous_status == ItemStatus.new_stock
        assert activity.type == ActivityType.soon_in_stock.value
        assert "Reserved for Marko Jovanovic." in activity.comment

    @pytest.mark.asyncio
    async def test_warranty_flag_is_editable_and_carried_into_stock(self, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        record = await make.soon(model, "Budva", "P1")

        record, activity = await engine.edit_soon_in_stock(record.id, {"warranty_confirmed": True})

        assert record.warranty_confirmed is True
        assert activity.comment == "Warranty confirmed changed from False to True."
        _, item, _, _ = await engine.add_to_stock(record.id)
        assert item.warranty_confirmed is True


class TestAddToStock:
    """Promotion of a pre-stock record into a boutique."""

    @pytest.mark.asyncio
    async def test_missing_invoice_number_writes_nothing(self, db, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        record = await make.soon(model, "Belgrade", "P1", invoice_number=None)

        with pytest.raises(MissingInvoiceNumber):
            await engine.add_to_stock(record.id)

        assert await engine.soon.get(record.id) is record
        assert model.boutique_for("Belgrade").quantity == 0
        assert (await db.execute(select(func.count(Shipment.id)))).scalar() == 0

    @pytest.mark.asyncio
    async def test_missing_ex_geneva_price(self, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        record = await make.soon(model, "Belgrade", "P1", ex_geneva_price=None)
        with pytest.raises(MissingExGenevaPrice):
            await engine.add_to_stock(record.id)

    @pytest.mark.asyncio
    async def test_promotion(self, db, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        record = await make.soon(model, "Belgrade", "P1")
        record_id = record.id

        promoted_model, item, activity, shipment = await engine.add_to_stock(record_id)

        assert promoted_model.id == model.id
        assert item.status == ItemStatus.stock
        assert item.location == "Safe"
        assert item.extra["invoiceNumber"] == "INV-1"
        assert item.extra["exGenevaPrice"] == 8000.0
        assert model.boutique_for("Belgrade").quantity == 1
        assert (await db.execute(select(func.count(SoonInStock.id)))).scalar() == 0
        assert activity.type == ActivityType.added_to_stock.value
        assert shipment.invoice_number == "INV-1"
        assert shipment.payment_deadline == date(2024, 5, 15)
        assert shipment.quantity == 1
        assert shipment.amount == Decimal("8000")
        await assert_inventory_consistent(db)

    @pytest.mark.asyncio
    async def test_second_item_of_an_invoice_grows_the_shipment(self, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        first = await make.soon(model, "Belgrade", "P1")
        second = await make.soon(model, "Belgrade", "P2", ex_geneva_price=Decimal("9000"))

        await engine.add_to_stock(first.id)
        _, _, _, shipment = await engine.add_to_stock(second.id)

        assert shipment.quantity == 2
        assert shipment.amount == Decimal("17000")

    @pytest.mark.asyncio
    async def test_wishlist_collection(self, make, engine):
        model = await make.model("M126610LN-0001", collection="Submariner")
        record = await make.soon(model, "Belgrade", "P1")
        _, item, _, _ = await engine.add_to_stock(record.id)
        assert item.status == ItemStatus.wishlist
        assert item.previous_status == ItemStatus.new_stock

    @pytest.mark.asyncio
    async def test_active_wishlist_for_rmc_and_store(self, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        client = await make.client()
        await make.wishlist(client, "M126334-0001", store=await make.products.get_store("Belgrade"))
        record = await make.soon(model, "Belgrade", "P1")

        _, item, _, _ = await engine.add_to_stock(record.id)
        assert item.status == ItemStatus.wishlist

    @pytest.mark.asyncio
    async def test_reservation_is_carried(self, make, engine):
        model = await make.model("M126334-0001", collection="Datejust")
        client = await make.client()
        record = await make.soon(
            model, "Budva", "P1", status=ItemStatus.pre_reserved,
            reserved_for=client.id, reservation_time=datetime(2024, 3, 2, 9, 30),
        )

        _, item, activity, _ = await engine.add_to_stock(record.id)

        assert item.status == ItemStatus.pre_reserved
        assert item.reserved_for == client.id
        assert item.reservation_time == datetime(2024, 3, 2, 9, 30)
        assert activity.client_id == client.id
