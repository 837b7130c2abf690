import pytest

from clubbot.core.actions import Action, ActionKind, decode, encode


@pytest.mark.parametrize("kind", list(ActionKind))
def test_every_kind_decodes_back(kind):
    assert decode(encode(kind, 42)) == Action(kind, 42)


def test_encoded_id_shape():
    assert encode(ActionKind.JOIN_APPROVE, 7) == "cb|join.approve|7"
    assert len(encode(ActionKind.TRANSFER_APPROVE, 10**18)) <= 100


@pytest.mark.parametrize("custom_id", [
    None, "", "start_mendier", "cb|club.approve", "cb|club.approve|x",
    "cb|nope.kind|3", "xx|club.approve|3", "cb|club.approve|3|extra",
])
def test_foreign_ids_decode_to_none(custom_id):
    assert decode(custom_id) is None
