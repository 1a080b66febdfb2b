import pytest

from app.services.request_types import RequestType, normalize_request_type, resolve_request_type


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("item", RequestType.ITEM),
        ("RequestType.item", RequestType.ITEM),
        ("ITEM_REQUEST", RequestType.ITEM),
        ("rental_request", RequestType.RENT),
        ("ride-sharing", RequestType.RIDE),
        ("price request", RequestType.PRICE),
        ("hiring", RequestType.JOB),
        ("jobs", RequestType.JOB),
        ("tour", RequestType.TOURS),
        ("event", RequestType.EVENTS),
        (RequestType.DELIVERY, RequestType.DELIVERY),
    ],
)
def test_normalize_known_spellings(raw, expected):
    assert normalize_request_type(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "spaceship", "RequestType.unknown"])
def test_normalize_unrecognized_is_none(raw):
    assert normalize_request_type(raw) is None


def test_resolve_prefers_explicit_type():
    assert resolve_request_type("service", {"request_type": "rent"}) == RequestType.SERVICE


def test_resolve_falls_back_to_metadata_type():
    assert resolve_request_type(None, {"request_type": "delivery_request"}) == RequestType.DELIVERY


def test_resolve_pickup_and_destination_imply_ride():
    metadata = {"pickup": {"lat": 6.9}, "destination": {"lat": 7.2}}
    assert resolve_request_type("unknown-thing", metadata) == RequestType.RIDE


def test_resolve_pickup_alone_is_not_a_ride():
    assert resolve_request_type(None, {"pickup": {"lat": 6.9}}) is None
