import queue
import threading

import pytest

from mpo_scoring.evaluator_pool import MAX_POOL_SIZE, EvaluatorPool


class Handle:
    created = 0

    def __init__(self):
        Handle.created += 1
        self.id = Handle.created


def test_pool_size_bounds():
    with pytest.raises(ValueError):
        EvaluatorPool(Handle, max_size=0)
    with pytest.raises(ValueError):
        EvaluatorPool(Handle, max_size=MAX_POOL_SIZE + 1)


def test_handles_are_reused():
    pool = EvaluatorPool(Handle, max_size=3)
    first = pool.checkout()
    pool.checkin(first)
    assert pool.checkout() is first
    assert pool.created == 1


def test_pool_grows_lazily_up_to_max():
    pool = EvaluatorPool(Handle, max_size=2, prefill=0)
    a = pool.checkout()
    b = pool.checkout()
    assert a is not b
    assert pool.created == 2
    with pytest.raises(queue.Empty):
        pool.checkout(timeout=0.01)
    pool.checkin(a)
    assert pool.checkout(timeout=0.01) is a


def test_lease_returns_handle_on_error():
    pool = EvaluatorPool(Handle, max_size=1)
    with pytest.raises(RuntimeError):
        with pool.lease():
            raise RuntimeError("evaluation failed")
    assert pool.idle == 1


def test_factory_failure_releases_slot():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise OSError("licence server unavailable")
        return object()

    pool = EvaluatorPool(flaky, max_size=1, prefill=0)
    with pytest.raises(OSError):
        pool.checkout()
    assert pool.created == 0
    assert pool.checkout() is not None


def test_no_handle_shared_between_threads():
    pool = EvaluatorPool(Handle, max_size=4)
    in_use: set[int] = set()
    lock = threading.Lock()
    clashes = []

    def work():
        for _ in range(200):
            with pool.lease() as handle:
                with lock:
                    if id(handle) in in_use:
                        clashes.append(handle)
                    in_use.add(id(handle))
                with lock:
                    in_use.discard(id(handle))

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert not clashes
    assert pool.created <= 4
    assert pool.idle == pool.created
