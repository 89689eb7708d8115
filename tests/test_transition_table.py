import pytest

from app.schemas.notarization_schema import DocumentStatusEnum
from app.services import transition_table as tt


def test_happy_path_transitions():
    assert tt.next_status("pending", "secretary", "accept") == "processing"
    assert tt.next_status("processing", "notary", "accept") == "readyToSign"
    assert tt.next_status("readyToSign", "user", "accept") == "pendingSignature"
    assert tt.next_status("pendingSignature", "notary", "accept") == "accepted"
    assert tt.next_status("pendingSignature", "system", "accept") == "accepted"


@pytest.mark.parametrize("status,role", [
    ("pending", "secretary"),
    ("processing", "secretary"),
    ("processing", "notary"),
    ("readyToSign", "notary"),
    ("pendingSignature", "notary"),
])
def test_rejections_lead_to_rejected(status, role):
    assert tt.next_status(status, role, "reject") == "rejected"


def test_unlisted_triples_are_invalid():
    assert tt.next_status("pending", "notary", "accept") is None
    assert tt.next_status("pending", "user", "accept") is None
    assert tt.next_status("readyToSign", "secretary", "accept") is None
    assert tt.next_status("readyToSign", "user", "reject") is None
    assert tt.next_status("pendingSignature", "system", "reject") is None


def test_terminal_states_have_no_outbound_transitions():
    for (current, _, _) in tt.TRANSITIONS:
        assert not tt.is_terminal(current)
    assert tt.is_terminal("accepted")
    assert tt.is_terminal("rejected")


def test_every_non_terminal_state_can_move():
    sources = {current for current, _, _ in tt.TRANSITIONS}
    for status in DocumentStatusEnum:
        if not tt.is_terminal(status.value):
            assert status.value in sources


def test_validate_table_rejects_transition_out_of_terminal(monkeypatch):
    broken = dict(tt.TRANSITIONS)
    broken[("accepted", "notary", "reject")] = "rejected"
    monkeypatch.setattr(tt, "TRANSITIONS", broken)
    with pytest.raises(RuntimeError):
        tt.validate_table()


def test_role_queues():
    assert tt.ROLE_VISIBLE_STATUSES["secretary"] == ("pending", "processing")
    assert "pendingSignature" in tt.ROLE_VISIBLE_STATUSES["notary"]
    assert set(tt.ROLE_VISIBLE_STATUSES["admin"]) == {s.value for s in DocumentStatusEnum}
