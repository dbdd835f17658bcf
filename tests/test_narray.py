"""Tests for the NArray view handle."""

import copy
import gc

import numpy as np
import pytest

import ndview as nd
from ndview import NArray


class TestConstruction:
    """Tests for the construction forms."""

    @pytest.mark.parametrize("ndim", [1, 2, 5])
    def test_default_constructor_has_size_zero(self, ndim):
        a = NArray(ndim=ndim)
        assert a.size == 0
        assert a.shape == (0,) * ndim
        assert a.storage is None
        assert a.is_empty

    def test_default_constructor_constructs_nothing(self, tracked):
        a = NArray(ndim=1, dtype=tracked)
        assert a.size == 0
        assert tracked.defaults == 0

    def test_default_constructor_allows_no_default_type(self, no_default):
        a = NArray(ndim=1, dtype=no_default)
        assert a.size == 0

    @pytest.mark.parametrize("shape, size", [
        ((3,), 3),
        ((3, 2), 6),
        ((3, 2, 5, 1, 7), 210),
    ])
    def test_sized_constructor(self, shape, size):
        a = NArray(shape)
        assert a.size == size
        assert a.shape == shape
        assert a.strides == nd.core.row_major_strides(shape)

    def test_sized_constructor_default_constructs(self, tracked):
        a = NArray((3,), dtype=tracked)
        assert a.size == 3
        assert tracked.defaults == 3

    def test_sized_constructor_rejects_no_default(self, no_default):
        with pytest.raises(nd.CapabilityError):
            NArray((3,), dtype=no_default)

    @pytest.mark.parametrize("shape, size", [
        ((3,), 3),
        ((3, 2), 6),
        ((3, 2, 5, 1, 7), 210),
    ])
    def test_value_constructor(self, shape, size):
        a = NArray(shape, 1)
        assert a.size == size
        assert a.shape == shape
        assert a.dtype is nd.int64
        assert all(x == 1 for x in a.elements())

    def test_value_constructor_copies_size_times(self, tracked):
        prototype = tracked()
        tracked.reset()

        a = NArray((3, 2), prototype)

        assert a.dtype == nd.ObjectType(tracked)
        assert tracked.copies == 6
        assert tracked.defaults == 0

    def test_value_constructor_no_default_type(self, no_default):
        a = NArray((2,), no_default(7))
        assert a[0].value == 7
        assert a[1].value == 7

    def test_value_out_of_range(self):
        with pytest.raises(nd.PromotionError):
            NArray((2,), 2**40, dtype=nd.int32)
        with pytest.raises(nd.PromotionError):
            NArray((2,), 2**64)

    def test_from_iterable_short(self):
        a = NArray.from_iterable((2, 2), [1, 2, 3])
        assert a.tolist() == [[1, 2], [3, 0]]

    def test_from_iterable_long(self):
        a = NArray.from_iterable((2, 2), [1, 2, 3, 4, 5])
        assert a.tolist() == [[1, 2], [3, 4]]

    def test_from_iterable_infers_promoted_type(self):
        a = NArray.from_iterable((3,), [1, 2.5, 3])
        assert a.dtype is nd.float64

    def test_from_iterable_explicit_type(self):
        a = NArray.from_iterable((3,), [1, 2, 3], dtype=nd.int16)
        assert a.dtype is nd.int16
        assert a.to_numpy().dtype == np.int16

    def test_rank_zero_rejected(self):
        with pytest.raises(nd.ShapeMismatchError):
            NArray(())
        with pytest.raises(nd.ShapeMismatchError):
            NArray(ndim=0)

    def test_rank_mismatch(self):
        with pytest.raises(nd.ShapeMismatchError):
            NArray((2, 3), ndim=3)

    def test_factories(self):
        assert nd.empty(3).shape == (0, 0, 0)
        assert nd.zeros((2, 2), dtype=nd.int32).tolist() == [[0, 0], [0, 0]]
        assert nd.full((2,), 1.5).tolist() == [1.5, 1.5]
        assert nd.array([[1, 2], [3, 4]]).shape == (2, 2)
        assert nd.from_numpy(np.arange(6).reshape(2, 3)).tolist() == [[0, 1, 2], [3, 4, 5]]


class TestSharing:
    """Tests for storage sharing and lifetime."""

    def test_copy_constructor_shares_data(self):
        a = NArray((3,), 0)
        b = NArray(a)
        b[1] = 1

        assert a.size == b.size
        assert a.shape == b.shape
        assert a[1] == 1
        assert a.storage is b.storage
        assert a.address((0,)) == b.address((0,))

    def test_copy_module_shares(self):
        a = NArray((2, 2), 0)
        b = copy.copy(a)
        b[0, 0] = 5
        assert a[0, 0] == 5

    def test_views_count_references(self):
        a = NArray((4,), 0)
        storage = a.storage
        assert storage.ref_count == 1
        b = a.flip(0)
        c = NArray(b)
        assert storage.ref_count == 3
        del b, c
        gc.collect()
        assert storage.ref_count == 1

    def test_storage_outlives_origin(self, tracked):
        """Views keep storage alive; the last one destroys the elements."""
        a = NArray((2, 2), dtype=tracked)
        b = a.flip(0)
        storage = a.storage

        del a
        gc.collect()
        assert not storage.released
        assert tracked.destroyed == 0

        del b
        gc.collect()
        assert storage.released
        assert tracked.destroyed == 4

    def test_clone_is_independent(self, grid):
        c = grid.clone()
        c[0, 0, 0] = 100
        assert grid[0, 0, 0] == 0
        assert c.storage is not grid.storage
        assert c.storage.ref_count == 1

    def test_clone_condenses(self, grid):
        view = grid.flip(1).transpose().skip(0, 2)
        c = view.clone()
        assert c.shape == view.shape
        assert c.strides == nd.core.row_major_strides(view.shape)
        assert c.offset == 0
        assert c == view
        assert c.storage.capacity == view.size

    def test_clone_copies_size_times(self, tracked):
        a = NArray((2, 3), dtype=tracked)
        tracked.reset()

        c = a.clone()

        assert tracked.copies == 6
        assert tracked.defaults == 0
        assert c[0, 0] is not a[0, 0]

    def test_clone_of_empty(self):
        c = NArray(ndim=2).clone()
        assert c.shape == (0, 0)


class TestReadOnly:
    """Tests for read-only views."""

    def test_readonly_rejects_writes(self, grid):
        ro = grid.as_readonly()
        assert ro.readonly
        with pytest.raises(nd.ReadOnlyError):
            ro[0, 0, 0] = 1
        with pytest.raises(nd.ReadOnlyError):
            ro.set_at((0, 0, 0), 1)
        with pytest.raises(nd.ReadOnlyError):
            ro.fill(1)
        with pytest.raises(nd.ReadOnlyError):
            ro += 1

    def test_readonly_sees_writes(self, grid):
        ro = grid.as_readonly()
        grid[1, 2, 3] = -1
        assert ro[1, 2, 3] == -1

    def test_readonly_propagates(self, grid):
        ro = grid.as_readonly()
        assert ro.flip(0).readonly
        assert ro[0].readonly
        assert NArray(ro).readonly
        assert copy.copy(ro).readonly

    def test_clone_is_writable(self, grid):
        c = grid.as_readonly().clone()
        assert not c.readonly
        c[0, 0, 0] = 7
        assert grid[0, 0, 0] == 0


class TestAccess:
    """Tests for checked and unchecked element access."""

    def test_indexing(self, grid):
        assert grid[1, 2, 3] == 23
        assert grid[1][2][3] == 23
        assert grid[1, 2].shape == (4,)
        assert grid[1].shape == (3, 4)

    def test_at(self, grid):
        assert grid.at((1, 0, 2)) == 14
        with pytest.raises(nd.BoundsError):
            grid.at((2, 0, 0))
        with pytest.raises(nd.BoundsError):
            grid.at((0, 0, -1))

    def test_set_at(self, grid):
        grid.set_at((0, 1, 1), 50)
        assert grid[0, 1, 1] == 50
        with pytest.raises(nd.BoundsError):
            grid.set_at((0, 3, 0), 1)
        with pytest.raises(nd.PromotionError):
            grid.set_at((0, 0, 0), 1.5)
        with pytest.raises(nd.PromotionError):
            grid.set_at((0, 0, 0), 2**63)
        small = NArray((2, 2), 0, dtype=nd.int8)
        with pytest.raises(nd.PromotionError):
            small.fill(300)
        with pytest.raises(nd.PromotionError):
            small[0, 1] = -200
        assert small.tolist() == [[0, 0], [0, 0]]

    def test_set_subview(self, grid):
        grid[1] = 9
        assert all(x == 9 for x in grid[1].elements())
        assert grid[0, 0, 0] == 0

    def test_too_many_indices(self, grid):
        with pytest.raises(nd.ShapeMismatchError):
            grid[0, 0, 0, 0]

    def test_non_integer_index(self, grid):
        with pytest.raises(TypeError):
            grid[0.5]

    def test_empty_access(self):
        with pytest.raises(nd.BoundsError):
            NArray(ndim=1).at((0,))

    def test_fill(self, grid):
        grid.skip(2, 2).fill(-1)
        assert grid[0, 0].tolist() == [-1, 1, -1, 3]

    def test_len_and_iter(self, grid):
        assert len(grid) == 2
        rows = list(grid)
        assert len(rows) == 2
        assert rows[1].shape == (3, 4)
        assert rows[1][0, 0] == 12


class TestViews:
    """Tests for transformation methods on the handle."""

    def test_views_share_storage(self, grid):
        for view in (
            grid.subarray((0, 1, 1), (2, 2, 2)),
            grid.flip(0),
            grid.transpose(),
            grid.skip(2, 2),
            grid.window(2, 2),
            grid.repeat(3),
            grid.reshape(4, 6),
            grid.condense(),
            grid.slice(1, 0),
            grid.range(0, 1, 1),
            grid.swap_axes(0, 1),
        ):
            assert view.storage is grid.storage

    def test_subarray_values(self, grid):
        sub = grid.subarray((1, 1, 2), (1, 2, 2))
        assert sub.tolist() == [[[18, 19], [22, 23]]]

    def test_subarray_out_of_bounds(self, grid):
        with pytest.raises(nd.BoundsError):
            grid.subarray((0, 0, 0), (3, 1, 1))

    def test_flip_values(self, grid):
        np.testing.assert_array_equal(grid.flip(2).to_numpy(), np.arange(24).reshape(2, 3, 4)[:, :, ::-1])

    def test_flip_twice_restores(self, grid):
        twice = grid.flip(1).flip(1)
        assert twice.shape == grid.shape
        assert twice.strides == grid.strides
        assert twice.offset == grid.offset

    def test_transpose_values(self, grid):
        np.testing.assert_array_equal(grid.transpose().to_numpy(), np.arange(24).reshape(2, 3, 4).T)

    def test_skip_values(self, grid):
        np.testing.assert_array_equal(grid.skip(1, 2, 1).to_numpy(), np.arange(24).reshape(2, 3, 4)[:, 1::2])

    def test_repeat_broadcasts(self, grid):
        repeated = grid.repeat(4)
        assert repeated.shape == (2, 3, 4, 4)
        addresses = {repeated.address((1, 2, 3, i)) for i in range(4)}
        assert len(addresses) == 1
        grid[1, 2, 3] = 99
        assert all(repeated[1, 2, 3, i] == 99 for i in range(4))

    def test_window_patches(self):
        image = NArray.from_iterable((4, 4), range(16), dtype=nd.int64)
        patches = image.window(0, 2).window(1, 2)
        assert patches.shape == (3, 3, 2, 2)
        assert patches[1, 2].tolist() == [[6, 7], [10, 11]]

    def test_window_skip_equals_reshape_transpose(self):
        a = NArray.from_iterable((6, 4), range(24), dtype=nd.int64)
        windows = a.window(0, 3).skip(0, 3)
        reshaped = a.reshape(2, 3, 4).transpose((0, 2, 1))
        assert windows.shape == reshaped.shape
        assert windows.strides == reshaped.strides
        assert windows == reshaped

    def test_reshape_count_mismatch(self, grid):
        with pytest.raises(nd.ShapeMismatchError):
            grid.reshape(5, 5)

    def test_reshape_numpy_integers(self, grid):
        assert grid.reshape(np.int64(24)).shape == (24,)
        assert grid.reshape(np.int32(4), np.int64(6)).shape == (4, 6)
        assert grid.reshape([np.int64(6), 4]).strides == (4, 1)

    def test_reshape_flipped_preserves_order(self, grid):
        flipped = grid.flip(0).flip(1).flip(2)
        reshaped = flipped.reshape(4, 6)
        assert reshaped.strides == (-6, -1)
        assert list(reshaped.elements()) == list(range(23, -1, -1))

    def test_reshape_doubly_flipped(self):
        a = NArray.from_iterable((3, 4), range(12), dtype=nd.int64)
        reshaped = a.flip(0).flip(1).reshape(2, 6)
        assert reshaped.strides == (-6, -1)
        assert list(reshaped.elements()) == list(range(11, -1, -1))

    def test_reshape_not_expressible(self, grid):
        with pytest.raises(nd.LayoutError):
            grid.transpose().reshape(24)
        assert grid.transpose().clone().reshape(24).shape == (24,)

    def test_condense_idempotent(self, grid):
        for view in (grid, grid.flip(2), grid.skip(1, 2), grid.subarray((0, 0, 1), (2, 3, 2))):
            once = view.condense()
            twice = once.condense()
            assert once.shape == twice.shape
            assert once.strides == twice.strides
            assert once.offset == twice.offset
            assert list(once.elements()) == list(view.elements())

    def test_as_condensed_alias(self, grid):
        assert grid.as_condensed().shape == (1, 1, 24)

    def test_condense_empty(self):
        a = NArray((2, 0, 3))
        assert a.condense().strides == (0, 0, 0)

    def test_slice(self, grid):
        assert grid.slice(2, 1).tolist() == [[1, 5, 9], [13, 17, 21]]
        with pytest.raises(nd.ShapeMismatchError):
            NArray((3,), 0).slice(0, 0)

    def test_contiguity(self, grid):
        assert grid.is_contiguous
        assert not grid.transpose().is_contiguous
        assert grid.is_unique
        assert not grid.window(2, 2).is_unique


class TestIteration:
    """Tests for subarray enumeration."""

    @pytest.mark.parametrize("k, count, shape", [
        (3, 1, (2, 3, 4)),
        (2, 2, (3, 4)),
        (1, 6, (4,)),
    ])
    def test_subarrays_count(self, grid, k, count, shape):
        subs = grid.subarrays(k)
        assert len(subs) == count
        items = list(subs)
        assert len(items) == count
        assert all(item.shape == shape for item in items)

    def test_subarrays_row_major(self, grid):
        firsts = [sub[0] for sub in grid.subarrays(1)]
        assert firsts == [0, 4, 8, 12, 16, 20]

    def test_subarrays_zero_yields_elements(self, grid):
        elements = list(grid.subarrays(0))
        assert len(elements) == 24
        expected = [grid[i, j, k] for i in range(2) for j in range(3) for k in range(4)]
        assert elements == expected

    def test_subarrays_restartable(self, grid):
        subs = grid.flip(0).subarrays(0)
        assert list(subs) == list(subs)

    def test_subarrays_share_storage(self, grid):
        for sub in grid.subarrays(2):
            sub[0, 0] = -5
        assert grid[0, 0, 0] == -5
        assert grid[1, 0, 0] == -5

    def test_subarrays_invalid_rank(self, grid):
        with pytest.raises(nd.ShapeMismatchError):
            grid.subarrays(4)

    def test_subarrays_of_empty(self):
        assert list(NArray(ndim=2).subarrays(1)) == []


class TestConversion:
    """Tests for conversions and representation."""

    def test_astype_widening(self, grid):
        f = grid.astype(nd.float64)
        assert f.dtype is nd.float64
        assert f == grid
        assert f.storage is not grid.storage

    def test_astype_narrowing(self, grid):
        with pytest.raises(nd.PromotionError):
            grid.astype(nd.int32)

    def test_to_numpy_is_copy(self, grid):
        arr = grid.to_numpy()
        arr[0, 0, 0] = 42
        assert grid[0, 0, 0] == 0

    def test_repr(self):
        a = NArray((2,), 1.0)
        assert repr(a).startswith("NArray([1. 1.], dtype=nd.float64")
        assert "readonly=True" in repr(a.as_readonly())
