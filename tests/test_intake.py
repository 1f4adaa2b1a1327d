import math
from datetime import date
import httpx
import pytest

from intake import IntakeForm

TODAY = date(2025, 3, 10)


def offline_client(calls):
    def handler(request):
        calls.append(request)
        return httpx.Response(201, json={"message": "ok", "order": {}})
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


@pytest.fixture
def calls():
    return []


@pytest.fixture
def form(taxonomy, calls):
    return IntakeForm(taxonomy, offline_client(calls), today=TODAY)


def fill(form):
    form.shop_name = "Royal Boutique"
    form.client_name = "Roshni Sharma"
    form.client_number = "9876543210"
    form.select_category("shirts")
    form.select_subcategory("formal")
    form.type_measurement("chest", "40")
    form.type_measurement("neck", "15.5")


def test_defaults(form):
    assert form.pickup_date == TODAY
    assert form.delivery_date == TODAY
    assert form.fields == ()
    assert form.measurements == {}


def test_subcategory_exposes_only_its_fields(form, taxonomy):
    form.select_category("shirts")
    assert form.fields == ()
    form.select_subcategory("formal")
    assert [f.key for f in form.fields] == list(taxonomy.subcategory("shirts", "formal").field_keys())
    with pytest.raises(KeyError):
        form.set_measurement("half_sleeve", 10)


def test_switching_category_clears_measurements(form):
    fill(form)
    form.select_category("trousers")
    assert form.subcategory_id == ""
    assert form.measurements == {}
    assert form.payload()["subcategory"] == ""


def test_switching_subcategory_keeps_shared_fields_only(form):
    fill(form)
    form.select_subcategory("casual")
    assert form.measurements == {"chest": 40.0}


def test_subcategory_needs_category(form):
    with pytest.raises(ValueError):
        form.select_subcategory("formal")
    with pytest.raises(ValueError):
        form.select_category("hats")


def test_typing_truncates_above_100(form):
    form.select_category("shirts")
    form.select_subcategory("formal")
    assert form.type_measurement("chest", "1005") == 100
    assert form.type_measurement("chest", "105") == 10
    assert form.type_measurement("chest", "4e1") == 41
    assert form.type_measurement("chest", "-12.5") == 12.5
    assert form.type_measurement("chest", "") is None
    assert "chest" not in form.measurements
    assert math.isnan(form.type_measurement("chest", "."))


def test_delivery_cannot_precede_pickup(form):
    form.set_pickup_date(date(2025, 3, 15))
    assert not form.is_delivery_date_allowed(date(2025, 3, 14))
    with pytest.raises(ValueError):
        form.set_delivery_date(date(2025, 3, 14))
    form.set_delivery_date(date(2025, 3, 15))
    assert form.delivery_date == date(2025, 3, 15)


def test_payload_uses_subcategory_name(form):
    fill(form)
    payload = form.payload()
    assert payload["category"] == "shirts"
    assert payload["subcategory"] == "Formal"
    assert payload["pickupDate"] == "2025-03-10"
    assert payload["measurements"] == {"chest": 40.0, "neck": 15.5}


def test_validation_messages(form):
    form.client_number = "12345"
    form.set_pickup_date(None)
    errors = form.validate()
    assert errors == {
        "shopName": "Shop name is required",
        "clientNumber": "Phone number must be at least 10 digits",
        "pickupDate": "Required",
        "category": "Select category",
        "subcategory": "Select subcategory",
    }


def test_empty_client_number_is_fine(form):
    fill(form)
    form.client_number = ""
    assert form.validate() == {}


@pytest.mark.parametrize("value,message", [
    (-1, "Min 0"),
    (100.5, "Max 100"),
    (float("nan"), "Enter a valid number"),
])
def test_measurement_bounds(form, value, message):
    fill(form)
    form.set_measurement("chest", value)
    assert form.validate() == {"measurements.chest": message}


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [-0.1, 101, 250])
async def test_out_of_range_never_reaches_network(form, calls, value):
    fill(form)
    form.set_measurement("waist", value)
    assert await form.submit() is None
    assert calls == []
    assert "measurements.waist" in form.errors


@pytest.mark.asyncio
async def test_submit_creates_order(app, taxonomy, store):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as api:
        form = IntakeForm(taxonomy, api, today=TODAY)
        fill(form)
        order = await form.submit()

    assert form.message == "Order submitted successfully!"
    assert form.error is None
    assert order["subcategory"] == "Formal"
    # the form is not reset after a successful submission
    assert form.shop_name == "Royal Boutique"
    assert form.measurements == {"chest": 40.0, "neck": 15.5}
    assert (await store.find_by_id(order["_id"]))["measurements"] == {"chest": 40.0, "neck": 15.5}


@pytest.mark.asyncio
async def test_submit_surfaces_server_message(taxonomy):
    def handler(request):
        return httpx.Response(500, json={"message": "Failed to submit order.", "error": "boom"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as api:
        form = IntakeForm(taxonomy, api, today=TODAY)
        fill(form)
        assert await form.submit() is None

    assert form.error == "Failed to submit order."
    assert form.message is None
    assert form.submitting is False


@pytest.mark.asyncio
async def test_submit_surfaces_transport_error(taxonomy):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as api:
        form = IntakeForm(taxonomy, api, today=TODAY)
        fill(form)
        await form.submit()

    assert form.error == "Connection refused"


@pytest.mark.asyncio
async def test_submit_falls_back_to_status_code(taxonomy):
    def handler(request):
        return httpx.Response(400, text="bad request")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as api:
        form = IntakeForm(taxonomy, api, today=TODAY)
        fill(form)
        assert await form.submit() is None

    assert form.error == "Request failed with status code 400"
