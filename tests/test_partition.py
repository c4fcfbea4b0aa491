import pytest

from ndsfs.partition import PartitionList


def _no_overlap(blocks):
    return all(a_pos + a_size <= b_pos for (a_pos, a_size), (b_pos, _) in zip(blocks, blocks[1:]))


def test_alloc_pos_records_block():
    parts = PartitionList(100)
    assert parts.alloc_pos(10, 20) is True
    assert parts.blocks() == [(10, 20)]


def test_alloc_pos_rejects_overlap_but_accepts_adjacent():
    parts = PartitionList(100)
    assert parts.alloc_pos(10, 20)
    assert parts.alloc_pos(5, 6) is False
    assert parts.alloc_pos(29, 5) is False
    assert parts.alloc_pos(10, 1) is False
    assert parts.alloc_pos(30, 5) is True
    assert parts.alloc_pos(0, 10) is True
    assert parts.blocks() == [(0, 10), (10, 20), (30, 5)]


def test_alloc_pos_rejects_out_of_bounds():
    parts = PartitionList(100)
    assert parts.alloc_pos(90, 11) is False
    assert parts.alloc_pos(-1, 2) is False
    assert parts.alloc_pos(90, 10) is True
    assert parts.blocks() == [(90, 10)]


def test_zero_size_allocation_is_not_recorded():
    parts = PartitionList(100)
    assert parts.alloc_pos(50, 0) is True
    assert parts.alloc_pos(101, 0) is False
    assert parts.blocks() == []


def test_negative_size_raises():
    parts = PartitionList(100)
    with pytest.raises(ValueError):
        parts.alloc_pos(0, -1)
    with pytest.raises(ValueError):
        parts.alloc(-1)


def test_negative_total_size_raises():
    with pytest.raises(ValueError):
        PartitionList(-5)


def test_free_releases_block():
    parts = PartitionList(100)
    parts.alloc_pos(10, 20)
    assert parts.free(10) is True
    assert parts.blocks() == []
    assert parts.alloc_pos(15, 5) is True


def test_free_unknown_position_fails():
    parts = PartitionList(100)
    parts.alloc_pos(10, 20)
    assert parts.free(11) is False
    assert parts.free(10) is True
    assert parts.free(10) is False


def test_alloc_takes_lowest_free_offset():
    parts = PartitionList(100)
    parts.alloc_pos(0, 10)
    assert parts.alloc(5) == 10
    assert parts.blocks() == [(0, 10), (10, 5)]


def test_alloc_respects_alignment_and_start():
    parts = PartitionList(10000)
    parts.alloc_pos(0, 0x4000 // 4)
    for align, start in [(4, 0), (512, 0), (4096, 0), (4, 3000), (512, 5000)]:
        pos = parts.alloc(100, align, start)
        assert pos is not None
        assert pos % align == 0
        assert pos >= start
    assert _no_overlap(parts.blocks())


def test_alloc_fills_gap_between_blocks():
    parts = PartitionList(100)
    parts.alloc_pos(0, 10)
    parts.alloc_pos(20, 10)
    pos = parts.alloc(10)
    assert pos == 10
    assert parts.alloc(1, 1, 0) == 30


def test_alloc_skips_gap_that_is_too_small():
    parts = PartitionList(100)
    parts.alloc_pos(0, 10)
    parts.alloc_pos(15, 10)
    pos = parts.alloc(8)
    assert pos is not None and pos >= 25
    assert _no_overlap(parts.blocks())


def test_alloc_returns_none_when_full():
    parts = PartitionList(64)
    parts.alloc_pos(0, 60)
    assert parts.alloc(8) is None
    assert parts.blocks() == [(0, 60)]


def test_alloc_invalid_alignment_raises():
    parts = PartitionList(64)
    with pytest.raises(ValueError):
        parts.alloc(4, 0)


def test_freed_space_is_reused_by_alloc():
    parts = PartitionList(100)
    parts.alloc_pos(0, 50)
    parts.alloc_pos(50, 50)
    assert parts.alloc(10) is None
    assert parts.free(0)
    assert parts.alloc(10) == 0