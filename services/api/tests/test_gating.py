from app.services.entitlements import Entitlements
from app.services.gating import ANONYMOUS, PHONE_FIELD, Viewer, apply_contact_gating


def _record() -> dict:
    return {
        "id": "r1",
        "owner_id": "owner",
        "title": "Need a drill",
        PHONE_FIELD: "+94770000000",
        "requester_email": "owner@example.com",
    }


def _entitlements(count: int, limit: int = 3) -> Entitlements:
    return Entitlements(
        user_id="viewer",
        audience="normal",
        is_subscribed=False,
        period=202610,
        response_count=count,
        response_limit=limit,
    )


def test_non_owner_without_response_loses_phone_keeps_email():
    gated = apply_contact_gating(_record(), Viewer(id="viewer"))
    assert PHONE_FIELD not in gated
    assert gated["requester_email"] == "owner@example.com"
    assert gated["contact_visible"] is False
    assert gated["can_message"] is False


def test_owner_sees_phone():
    gated = apply_contact_gating(_record(), Viewer(id="owner"))
    assert gated[PHONE_FIELD] == "+94770000000"
    assert gated["contact_visible"] is True
    assert gated["can_message"] is True


def test_responder_sees_phone():
    gated = apply_contact_gating(_record(), Viewer(id="viewer", has_responded=True))
    assert gated[PHONE_FIELD] == "+94770000000"
    assert gated["contact_visible"] is True


def test_quota_allows_messaging_but_not_contact():
    gated = apply_contact_gating(_record(), Viewer(id="viewer", entitlements=_entitlements(0)))
    assert PHONE_FIELD not in gated
    assert gated["contact_visible"] is False
    assert gated["can_message"] is True


def test_exhausted_quota_blocks_messaging():
    gated = apply_contact_gating(_record(), Viewer(id="viewer", entitlements=_entitlements(3)))
    assert gated["can_message"] is False


def test_anonymous_viewer_is_masked_and_input_untouched():
    record = _record()
    gated = apply_contact_gating(record, ANONYMOUS)
    assert PHONE_FIELD not in gated
    assert gated["contact_visible"] is False
    assert record[PHONE_FIELD] == "+94770000000"
