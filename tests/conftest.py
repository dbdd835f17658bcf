"""Pytest configuration and fixtures."""

import pytest
import ndview as nd


class Tracked:
    """Element type that counts its default constructions, copies and deletions."""

    defaults = 0
    copies = 0
    destroyed = 0

    def __init__(self):
        type(self).defaults += 1

    def __copy__(self):
        type(self).copies += 1
        return object.__new__(type(self))

    def __del__(self):
        type(self).destroyed += 1

    @classmethod
    def reset(cls):
        cls.defaults = 0
        cls.copies = 0
        cls.destroyed = 0


class NoDefault:
    """Element type that cannot be constructed without arguments."""

    def __init__(self, value):
        self.value = value

    def __copy__(self):
        return NoDefault(self.value)

    def __eq__(self, other):
        return isinstance(other, NoDefault) and other.value == self.value


@pytest.fixture
def tracked():
    """Fixture for the Tracked element type with fresh counters."""
    Tracked.reset()
    yield Tracked
    Tracked.reset()


@pytest.fixture
def no_default():
    """Fixture for the NoDefault element type."""
    return NoDefault


@pytest.fixture
def grid():
    """2x3x4 int64 array holding 0..23 in row-major order."""
    return nd.NArray.from_iterable((2, 3, 4), range(24), dtype=nd.int64)


@pytest.fixture
def default_dtype():
    """Restore the process-wide default element type after the test."""
    saved = nd.get_default_dtype()
    yield saved
    nd.set_default_dtype(saved)
