import pytest

from api.errors import BadRequest, Conflict
from utils.guards import Failure, first_failure, enforce, require


def test_first_failure_stops_at_first_failing_guard():
    calls = []

    def guard(name, ok):
        def check():
            calls.append(name)
            return require(ok, BadRequest, name)
        return check

    failure = first_failure([guard("a", True), guard("b", False), guard("c", False)])

    assert failure == Failure(BadRequest, "b")
    assert calls == ["a", "b"]


def test_all_guards_pass():
    assert first_failure([lambda: None, lambda: require(True, Conflict, "x")]) is None
    enforce(lambda: None)


def test_enforce_raises_tagged_error():
    with pytest.raises(Conflict) as exc_info:
        enforce(lambda: require(True, BadRequest, "fine"), lambda: require(False, Conflict, "taken"))

    assert exc_info.value.message == "taken"
    assert exc_info.value.status_code == 409
