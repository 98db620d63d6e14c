import pytest

from ddsportal.core.exceptions import GenerationExhaustedError
from ddsportal.utils import identifiers


def test_generated_ids_match_format():
    for _ in range(500):
        assert identifiers.is_valid(identifiers.generate())


@pytest.mark.parametrize("value", [
    "K7QD-2M9X",
    "0000-ZZZZ",
])
def test_is_valid_accepts(value):
    assert identifiers.is_valid(value)


@pytest.mark.parametrize("value", [
    "k7qd-2m9x",
    "K7QD2M9X",
    "K7QD-2M9",
    "K7QD-2M9XX",
    " K7QD-2M9X",
    "K7QD_2M9X",
    "",
    None,
    12345678,
])
def test_is_valid_rejects(value):
    assert not identifiers.is_valid(value)


def test_generate_unique_skips_taken_values(monkeypatch):
    draws = iter(["AAAA-AAAA", "BBBB-BBBB", "CCCC-CCCC"])
    monkeypatch.setattr(identifiers, "generate", lambda: next(draws))
    taken = {"AAAA-AAAA", "BBBB-BBBB"}

    assert identifiers.generate_unique(lambda c: c in taken) == "CCCC-CCCC"


def test_generate_unique_never_returns_existing_value():
    seen = set()
    for _ in range(200):
        value = identifiers.generate_unique(lambda c: c in seen)
        assert value not in seen
        seen.add(value)


def test_generate_unique_exhausts_after_bound():
    calls = []

    def always_taken(candidate):
        calls.append(candidate)
        return True

    with pytest.raises(GenerationExhaustedError):
        identifiers.generate_unique(always_taken, max_attempts=7)

    assert len(calls) == 7
