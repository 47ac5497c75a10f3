import pytest

from grpc_middleware.metadata import (
    MD,
    encode_key_value,
    extract_incoming,
    extract_outgoing,
    pairs,
)
from grpc_middleware.wrappers import background

PARENT_KEY = object()
TEST_PAIRS = ["singlekey", "uno", "multikey", "one", "multikey", "two", "multikey", "three"]


def parent_ctx():
    return background().with_value(PARENT_KEY, "parentValue")


def assert_retains_parent_context(ctx):
    assert ctx.value(PARENT_KEY) == "parentValue"


def test_get():
    md = pairs(*TEST_PAIRS)
    assert md.get("singlekey") == "uno"
    assert md.get("multikey") == "one"
    assert md.get("nokey") == ""


def test_delete():
    md = pairs(*TEST_PAIRS)
    assert md.get("singlekey") == "uno"
    md.delete("singlekey").delete("doesnt exist")
    assert md.get("singlekey") == ""


def test_add():
    md = pairs(*TEST_PAIRS)
    md.add("multikey", "four").add("newkey", "something")
    assert md["multikey"] == ["one", "two", "three", "four"]
    assert md["newkey"] == ["something"]


def test_set():
    md = pairs(*TEST_PAIRS)
    md.set("multikey", "one").set("newkey", "something").set("newkey", "another")
    assert md["multikey"] == ["one"]
    assert md["newkey"] == ["another"]


def test_clone():
    md = pairs(*TEST_PAIRS)
    full = md.clone()
    assert len(full) == len(md)
    assert full.get("singlekey") == "uno"
    sub = md.clone("multikey")
    assert len(sub) == 1
    assert sub.get("singlekey") == ""
    assert sub["multikey"] == md["multikey"]
    sub["multikey"][1] = "modifiedtwo"
    assert sub["multikey"] != md["multikey"]


def test_clone_keys_are_case_insensitive():
    md = pairs(*TEST_PAIRS)
    assert list(md.clone("MultiKey")) == ["multikey"]


def test_to_outgoing():
    md = pairs(*TEST_PAIRS)
    n_ctx = md.to_outgoing(parent_ctx())
    assert_retains_parent_context(n_ctx)
    e_ctx = extract_outgoing(n_ctx).clone().set("newvalue", "something").to_outgoing(n_ctx)
    assert_retains_parent_context(e_ctx)
    assert extract_outgoing(n_ctx) != extract_outgoing(e_ctx)
    assert extract_outgoing(e_ctx).get("newvalue") == "something"


def test_to_incoming():
    md = pairs(*TEST_PAIRS)
    n_ctx = md.to_incoming(parent_ctx())
    assert_retains_parent_context(n_ctx)
    e_ctx = extract_incoming(n_ctx).clone().set("newvalue", "something").to_incoming(n_ctx)
    assert_retains_parent_context(e_ctx)
    assert extract_incoming(n_ctx) != extract_incoming(e_ctx)
    assert extract_incoming(n_ctx).get("newvalue") == ""


def test_extract_without_metadata_is_empty():
    assert extract_incoming(background()) == MD()
    assert extract_outgoing(background()) == MD()


def test_incoming_and_outgoing_are_separate():
    ctx = pairs("a", "1").to_incoming(background())
    assert extract_outgoing(ctx) == MD()
    assert extract_incoming(ctx)["a"] == ["1"]


def test_binary_keys_are_base64_encoded():
    md = MD().set("Key-Bin", "hello")
    assert md["key-bin"] == ["aGVsbG8="]
    assert encode_key_value("X-Plain", "v") == ("x-plain", "v")


def test_keys_are_lowercased():
    md = MD().set("Upper", "v").add("UPPER", "w")
    assert md["upper"] == ["v", "w"]
    assert md.get("UpPeR") == "v"


def test_pairs_rejects_odd_count():
    with pytest.raises(ValueError):
        pairs("only-key")