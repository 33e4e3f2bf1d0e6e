import asyncio
from concurrent.futures import InvalidStateError

import pytest

from dbstack.errors import ResolutionError, TransformError, UnresolvedValueError, ValidationError
from dbstack.services.deferred import (
    DeferredValue,
    all_,
    merge_record,
    of,
    output,
    pending,
    with_default,
)


def test_of_resolves_immediately_and_rereads_are_stable():
    payload = {"a": 1}
    value = of(payload)

    assert value.is_resolved()
    assert value.get() is payload
    assert value.get() is payload


def test_pending_value_cannot_be_read():
    value = pending()

    assert not value.is_settled()
    with pytest.raises(UnresolvedValueError):
        value.get()


def test_map_applies_function():
    assert of(20).map(lambda x: x + 1).get() == 21


def test_map_identity_law():
    source = of("15.5")
    assert source.map(lambda x: x).get() == source.get()


def test_map_waits_for_source():
    source = pending()
    derived = source.map(str.upper)

    assert not derived.is_settled()
    source._resolve("app")
    assert derived.get() == "APP"


def test_apply_is_map():
    assert of(2).apply(lambda x: x * 3).get() == 6


def test_map_flattens_returned_deferred_value():
    inner = pending()
    derived = of(1).map(lambda _: inner)

    assert not derived.is_settled()
    inner._resolve("done")
    assert derived.get() == "done"


def test_raising_function_fails_with_transform_error():
    def explode(_):
        raise ValueError("boom")

    derived = of(1).map(explode)

    assert derived.failed()
    with pytest.raises(TransformError) as excinfo:
        derived.get()
    assert isinstance(excinfo.value.original_error, ValueError)


def test_library_errors_from_function_are_carried_unchanged():
    def reject(_):
        raise ValidationError("bad bounds")

    with pytest.raises(ValidationError, match="bad bounds"):
        of(1).map(reject).get()


def test_failure_poisons_everything_derived():
    source = pending()
    first = source.map(lambda x: x + 1)
    second = first.map(lambda x: x * 2)
    merged = merge_record({"value": second, "other": of(1)})
    called = []
    source.map(called.append)

    error = ResolutionError("cluster creation failed")
    source._fail(error)

    for derived in (first, second, merged):
        assert derived.failed()
        assert derived.error() is error
    assert called == []


def test_merge_record_is_independent_of_resolution_order():
    a, b = pending(), pending()
    merged = merge_record({"a": a, "b": b})

    b._resolve(2)
    assert not merged.is_settled()
    a._resolve(1)
    assert merged.get() == {"a": 1, "b": 2}


def test_merge_record_of_known_values():
    assert merge_record({"a": of(1), "b": of(2)}).get() == {"a": 1, "b": 2}


def test_merge_record_lifts_plain_values_and_empty_records():
    assert merge_record({"a": 1, "b": of("x")}).get() == {"a": 1, "b": "x"}
    assert merge_record({}).get() == {}


def test_all_preserves_order():
    first, second = pending(), pending()
    combined = all_([first, "middle", second])

    second._resolve("last")
    first._resolve("first")
    assert combined.get() == ["first", "middle", "last"]


def test_output_passes_deferred_values_through():
    value = pending()
    assert output(value) is value


def test_output_lifts_nested_structures():
    version = pending()
    lifted = output({"engine": "aurora-postgresql", "versions": [version], "scaling": {"min": of(0.5)}})

    assert not lifted.is_settled()
    version._resolve("15.5")
    assert lifted.get() == {
        "engine": "aurora-postgresql",
        "versions": ["15.5"],
        "scaling": {"min": 0.5},
    }


@pytest.mark.parametrize(
    "given,expected",
    [
        (None, 4),
        (0, 0),
        ("", ""),
        (False, False),
        (128, 128),
    ],
)
def test_with_default_only_replaces_absent_values(given, expected):
    assert with_default(given, 4).get() == expected


def test_with_default_accepts_deferred_input():
    value = pending()
    defaulted = with_default(value, 0.5)
    value._resolve(0)
    assert defaulted.get() == 0


def test_item_access_is_lifted():
    secrets = of([{"secret_arn": "arn:one"}])
    assert secrets[0]["secret_arn"].get() == "arn:one"


def test_item_access_on_missing_index_fails():
    assert of([])[0].failed()


def test_settling_twice_is_rejected():
    value = pending()
    value._resolve(1)
    with pytest.raises(InvalidStateError):
        value._resolve(2)


def test_wait_from_asyncio():
    value = pending()

    async def scenario():
        asyncio.get_running_loop().call_soon(value._resolve, "ready")
        return await value.wait()

    assert asyncio.run(scenario()) == "ready"


def test_wait_raises_failure():
    value = pending()
    value._fail(ResolutionError("gone"))

    with pytest.raises(ResolutionError, match="gone"):
        asyncio.run(value.wait())


def test_repr_reflects_state():
    value = DeferredValue()
    assert repr(value) == "DeferredValue(<pending>)"
    value._resolve(3)
    assert repr(value) == "DeferredValue(3)"
