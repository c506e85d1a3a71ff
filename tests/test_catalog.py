"""Catalog adapter: record normalization and the degrade-to-empty search."""

import pytest

from conftest import CATALOG_RECORDS, catalog_transport, make_equipment
from equipment_service.catalog import (
    build_search_params,
    derive_equipment_id,
    infer_category,
    normalize_record,
)
from equipment_service.config import CATALOG_DEFAULT_FILTER_NAME, CATALOG_DEFAULT_FILTER_VALUE


class TestDeriveEquipmentId:
    def test_inventory_and_serial_are_joined(self):
        assert derive_equipment_id({"inventoryNumber": "INV-1", "serialNumber": "SN-9", "id": 5}) == "INV-1:SN-9"

    def test_join_keeps_splits_distinct(self):
        a = derive_equipment_id({"inventoryNumber": "12", "serialNumber": "345"})
        b = derive_equipment_id({"inventoryNumber": "1", "serialNumber": "2345"})
        assert a != b

    def test_stable_across_repeated_normalization(self):
        record = dict(CATALOG_RECORDS[0])
        ids = {normalize_record(record).id for _ in range(5)}
        assert ids == {"INV-0042:SN-7781"}

    def test_falls_back_to_single_number(self):
        assert derive_equipment_id({"inventoryNumber": "INV-1", "id": 7}) == "INV-1"
        assert derive_equipment_id({"serialNumber": "SN-2", "id": 7}) == "SN-2"

    def test_falls_back_to_upstream_id(self):
        assert derive_equipment_id({"id": 7, "serialNumber": "  "}) == "7"

    def test_total_on_empty_record(self):
        assert derive_equipment_id({}) == ""

    def test_numeric_numbers_are_stringified(self):
        assert derive_equipment_id({"inventoryNumber": 12, "serialNumber": 34}) == "12:34"


class TestInferCategory:
    def test_first_token_lowercased(self):
        assert infer_category("Microscopes optical") == "microscopes"

    def test_missing_classification(self):
        assert infer_category(None) == "other"
        assert infer_category("   ") == "other"


class TestNormalizeRecord:
    def test_full_record(self):
        item = normalize_record(CATALOG_RECORDS[0])
        assert item.id == "INV-0042:SN-7781"
        assert item.name == "Confocal Microscope LSM-900"
        assert item.category == "microscopes"
        assert item.status == "available"
        assert item.usage_type == "booking_required"
        assert item.inventory_number == "INV-0042"

    def test_missing_fields_are_represented_not_rejected(self):
        item = normalize_record({"id": 3, "name": None, "description": {"nested": True}})
        assert item.id == "3"
        assert item.name == ""
        assert item.description == ""
        assert item.category == "other"

    def test_unknown_status_falls_back_to_default(self):
        item = normalize_record({"id": 1, "status": "exploded", "usageType": "immediate_use"})
        assert item.status == "available"
        assert item.usage_type == "immediate_use"

    def test_extra_fields_are_dropped(self):
        dumped = normalize_record(CATALOG_RECORDS[0]).model_dump()
        assert "vendorCode" not in dumped
        assert "vendor_code" not in dumped


class TestSearchParams:
    def test_empty_search_uses_default_filter(self):
        assert build_search_params("", {}) == [(CATALOG_DEFAULT_FILTER_NAME, CATALOG_DEFAULT_FILTER_VALUE)]
        assert build_search_params(None, {"location": []}) == [
            (CATALOG_DEFAULT_FILTER_NAME, CATALOG_DEFAULT_FILTER_VALUE)
        ]

    def test_term_and_each_selected_option(self):
        params = build_search_params(" scales ", {"location": ["A", "B"], "brand": []})
        assert params == [("searchTerm", "scales"), ("location", "A"), ("location", "B")]


@pytest.mark.asyncio
async def test_search_returns_normalized_items(make_catalog):
    transport = catalog_transport()
    result = await make_catalog(transport).search("microscope", {"location": ["Building B"]})

    assert result.ok is True
    assert [i.id for i in result.items] == ["INV-0042:SN-7781", "C-555"]

    sent = transport.seen[0]
    assert sent.url.path == "/api/equipments/search"
    assert sent.url.params.get("login") == "tester"
    assert sent.url.params.get("searchTerm") == "microscope"
    assert sent.url.params.get("location") == "Building B"


@pytest.mark.asyncio
async def test_search_accepts_bare_list_payload(make_catalog):
    import httpx

    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[{"id": 1, "name": "Scale"}]))
    result = await make_catalog(transport).search()
    assert result.ok is True
    assert result.items[0].name == "Scale"


@pytest.mark.asyncio
async def test_upstream_error_degrades_to_empty(make_catalog):
    result = await make_catalog(catalog_transport(status_code=503)).search("anything")
    assert result.ok is False
    assert result.items == []


@pytest.mark.asyncio
async def test_malformed_payload_degrades_to_empty(make_catalog):
    import httpx

    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"unexpected": 1}))
    result = await make_catalog(transport).search()
    assert result.ok is False


@pytest.mark.asyncio
async def test_breaker_opens_after_repeated_failures(make_catalog, redis):
    transport = catalog_transport(status_code=500)
    catalog = make_catalog(transport, name="flaky", failure_threshold=2)

    for _ in range(2):
        assert (await catalog.search()).ok is False
    assert await redis.get("cb:flaky:state") == "OPEN"

    # open breaker short-circuits without touching upstream
    calls = len(transport.seen)
    assert (await catalog.search()).ok is False
    assert len(transport.seen) == calls


@pytest.mark.asyncio
async def test_filters_are_passed_through(make_catalog):
    result = await make_catalog(catalog_transport()).filters()
    assert result.ok is True
    assert [f.name for f in result.filters] == ["classification", "location"]
    assert result.filters[0].options == ["Microscopes", "Centrifuges"]


@pytest.mark.asyncio
async def test_sync_upserts_by_catalog_id(make_catalog, sql_storage):
    catalog = make_catalog(catalog_transport())

    ok, created, updated = await catalog.sync(sql_storage)
    assert (ok, created, updated) == (True, 2, 0)

    item = await sql_storage.get_equipment_by_catalog_id("INV-0042:SN-7781")
    await sql_storage.transition_equipment_status(item, "available", "booked")
    await sql_storage.session.commit()

    ok, created, updated = await catalog.sync(sql_storage)
    assert (ok, created, updated) == (True, 0, 2)

    items = await sql_storage.list_equipment()
    assert len(items) == 2
    # sync refreshes descriptions but leaves local status alone
    assert (await sql_storage.get_equipment_by_catalog_id("INV-0042:SN-7781")).status == "booked"


@pytest.mark.asyncio
async def test_sync_reports_failure_without_writing(make_catalog, memory_storage):
    memory_storage.equipment.clear()
    await memory_storage.add_equipment(make_equipment())

    ok, created, updated = await make_catalog(catalog_transport(status_code=502)).sync(memory_storage)
    assert ok is False
    assert (created, updated) == (0, 0)
    assert len(await memory_storage.list_equipment()) == 1
