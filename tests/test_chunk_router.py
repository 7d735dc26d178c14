"""Tests for chunk-to-node routing."""

import pytest

from controller.chunk_router import ChunkRouter, route


class TestRoute:

    def test_single_node_takes_everything(self):
        assert [route(i, 1) for i in range(5)] == [1, 1, 1, 1, 1]

    def test_round_robin_over_nodes(self):
        assert [route(i, 3) for i in range(7)] == [1, 2, 3, 1, 2, 3, 1]

    def test_two_nodes(self):
        assert route(0, 2) == 1
        assert route(1, 2) == 2
        assert route(2, 2) == 1

    def test_result_always_in_range(self):
        for n in range(1, 6):
            for i in range(50):
                assert 1 <= route(i, n) <= n

    def test_rejects_negative_index(self):
        with pytest.raises(ValueError):
            route(-1, 3)

    def test_rejects_zero_nodes(self):
        with pytest.raises(ValueError):
            route(0, 0)


class TestChunkRouter:

    def test_same_index_same_node(self):
        router = ChunkRouter(4)
        assert router.route(9) == router.route(9) == 2
        assert router.node_count == 4

    def test_invalid_node_count(self):
        with pytest.raises(ValueError):
            ChunkRouter(0)
