"""Tests for the single-connection pool."""

import threading

import pytest

from quarry_pool.exceptions import PoolClosedError
from quarry_pool.pooling import SingleConnectionPool


@pytest.fixture
def pool(make_config, factory):
    pool = SingleConnectionPool(make_config(strategy="single"), factory)
    yield pool
    pool.close()


class TestSingleConnectionPool:
    def test_connection_is_created_lazily(self, pool, factory):
        assert factory.created == []
        assert pool.stats().current_connections == 0
        pool.acquire()
        assert len(factory.created) == 1

    def test_returns_identical_handle(self, pool):
        first = pool.acquire()
        pool.release(first)
        second = pool.acquire()
        assert second is first
        pool.release(second)

    def test_release_resets_in_place(self, pool, factory):
        conn = pool.acquire()
        conn.execute("CREATE TABLE t (x INTEGER)")
        conn.execute("INSERT INTO t VALUES (1)")
        assert conn.in_transaction
        pool.release(conn)
        assert not conn.in_transaction
        assert conn.query("SELECT count(*) AS n FROM t") == [{"n": 0}]
        assert factory.discarded == []

    def test_invalid_connection_is_replaced(self, pool, factory):
        first = pool.acquire()
        pool.release(first)
        factory.broken.add(first)
        second = pool.acquire()
        assert second is not first
        assert first in factory.discarded
        assert first.closed

    def test_nested_acquire_shares_the_session(self, pool, factory):
        outer = pool.acquire()
        outer.execute("CREATE TABLE t (x INTEGER)")
        outer.execute("INSERT INTO t VALUES (1)")

        inner = pool.acquire()
        assert inner is outer
        pool.release(inner)
        # the outer holder's transaction is untouched
        assert outer.in_transaction
        assert factory.resets == 0

        pool.release(outer)
        assert factory.resets == 1
        assert not outer.in_transaction

    def test_foreign_handle_is_dropped(self, pool, factory):
        pool.acquire()
        stranger = factory.create("sqlite::memory:")
        pool.release(stranger)
        assert stranger.closed
        assert pool.stats().extra["holders"] == 1

    def test_extra_release_is_ignored(self, pool, factory):
        conn = pool.acquire()
        pool.release(conn)
        pool.release(conn)
        assert not conn.closed
        assert pool.acquire() is conn

    def test_stats(self, pool):
        stats = pool.stats()
        assert stats.strategy == "single"
        assert (stats.max_size, stats.max_idle) == (1, 1)
        assert stats.extra == {"has_connection": False, "in_transaction": False, "holders": 0}
        assert stats.is_concurrent is False

        conn = pool.acquire()
        conn.execute("CREATE TABLE t (x INTEGER)")
        conn.execute("INSERT INTO t VALUES (1)")
        stats = pool.stats().to_dict()
        assert stats["has_connection"] is True
        assert stats["in_transaction"] is True
        assert stats["current_connections"] == 1
        assert stats["idle_connections"] == 0
        pool.release(conn)
        assert pool.stats().idle_connections == 1

    def test_close(self, pool, factory):
        conn = pool.acquire()
        pool.release(conn)
        pool.close()
        assert conn.closed
        assert pool.stats().current_connections == 0
        with pytest.raises(PoolClosedError):
            pool.acquire()

    def test_close_with_holder_closes_on_release(self, pool):
        conn = pool.acquire()
        pool.close()
        assert not conn.closed
        pool.release(conn)
        assert conn.closed
        assert pool.stats().extra["has_connection"] is False

    def test_scoped_connection(self, pool):
        with pool.connection() as conn:
            assert conn.query("SELECT 1 AS one") == [{"one": 1}]
        assert pool.stats().extra["holders"] == 0

    def test_pool_context_manager(self, make_config, factory):
        with SingleConnectionPool(make_config(), factory) as pool:
            conn = pool.acquire()
            pool.release(conn)
        assert pool.closed
        assert conn.closed

    def test_racing_first_acquires_share_one_connection(self, pool, factory):
        create = factory.create
        barrier = threading.Barrier(2, timeout=5)

        def create_together(url):
            # both callers are past the empty check before either opens
            barrier.wait()
            return create(url)

        factory.create = create_together
        results = []

        def worker():
            results.append(pool.acquire())

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == 2
        assert results[0] is results[1]
        assert len(factory.created) == 2
        loser = next(conn for conn in factory.created if conn is not results[0])
        assert factory.discarded == [loser]
        assert loser.closed
        assert pool.stats().extra["holders"] == 2

        pool.release(results[0])
        pool.release(results[1])
        assert pool.stats().idle_connections == 1
        assert pool.stats().current_connections == 1
