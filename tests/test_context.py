import pytest

from rpcplug.share.context import Context, with_local_value, with_value

THE_ANSWER = "Answer to the Ultimate Question of Life, the Universe, and Everything"
MAGIC_NUMBER = 42


def test_context_values():
    ctx = Context(None)
    ctx.set_value("string", THE_ANSWER)
    ctx.set_value(42, MAGIC_NUMBER)
    assert ctx.value(42) == MAGIC_NUMBER
    assert ctx.value("string") == THE_ANSWER

    ctx.set_value("string", THE_ANSWER)
    text = str(ctx)
    assert ".WithValue(" in text
    assert THE_ANSWER in text


def test_missing_value_is_none():
    assert Context(None).value("absent") is None


def test_parent_fallback_and_shadowing():
    parent = Context(None)
    parent.set_value("a", 1)
    parent.set_value("b", 2)
    child = Context(parent)
    child.set_value("b", 20)
    assert child.value("a") == 1
    assert child.value("b") == 20
    child.delete_key("b")
    assert child.value("b") == 2


def test_delete_key_none_keeps_values():
    ctx = Context(None)
    ctx.set_value("k", "v")
    ctx.delete_key(None)
    assert ctx.value("k") == "v"


def test_with_value():
    ctx = with_value(None, "key", "value")
    assert ctx.value("key") == "value"


def test_with_value_keeps_parent():
    parent = with_value(None, "outer", 1)
    ctx = with_value(parent, "inner", 2)
    assert (ctx.value("outer"), ctx.value("inner")) == (1, 2)


def test_with_local_value():
    c = Context(None)
    c.set_value("key", "value")
    ctx = with_local_value(c, "MagicNumber", "42")
    assert ctx is c
    assert ctx.value("key") == "value"
    assert ctx.value("MagicNumber") == "42"


def test_nil_key_rejected():
    with pytest.raises(ValueError):
        with_value(None, None, "v")
    with pytest.raises(ValueError):
        with_local_value(Context(None), None, "v")


def test_unhashable_key_rejected():
    with pytest.raises(TypeError):
        with_value(None, ["list"], "v")
    with pytest.raises(TypeError):
        with_local_value(Context(None), {"a": 1}, "v")