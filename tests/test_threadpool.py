import os
import threading

import pytest

from dlengine.threadpool import ThreadPool


def test_resize() -> None:
    pool = ThreadPool(2, name='test')
    executor = pool.executor
    assert pool.size == 2

    assert not pool.resize(2)
    assert pool.executor is executor

    assert pool.resize(5)
    assert pool.size == 5
    assert pool.executor is not executor
    pool.shutdown()


@pytest.mark.parametrize('size', [0, -3])
def test_bad_size(size: int) -> None:
    with pytest.raises(ValueError):
        ThreadPool(size)
    pool = ThreadPool(1)
    with pytest.raises(ValueError):
        pool.resize(size)
    pool.shutdown()


def test_invoke_and_wait() -> None:
    pool = ThreadPool(4)
    res = pool.invoke_and_wait([lambda i=i: i * i for i in range(10)])
    assert res == [i * i for i in range(10)]
    pool.shutdown()


def test_runs_in_parallel() -> None:
    pool = ThreadPool(3)
    barrier = threading.Barrier(3, timeout=5)
    # would time out if the tasks didn't run concurrently
    res = pool.invoke_and_wait([barrier.wait for _ in range(3)], timeout=10)
    assert sorted(res) == [0, 1, 2]
    pool.shutdown()


def test_task_failure() -> None:
    pool = ThreadPool(2)

    def fail() -> int:
        raise RuntimeError('boom')

    futures = pool.invoke([lambda: 1, fail])
    with pytest.raises(RuntimeError, match='boom'):
        pool.sync(futures)
    pool.shutdown()


def test_resize_keeps_running_tasks() -> None:
    pool = ThreadPool(1)
    started = threading.Event()
    release = threading.Event()

    def task() -> str:
        started.set()
        release.wait(5)
        return 'done'

    [fut] = pool.invoke([task])
    assert started.wait(5)
    pool.resize(2)
    release.set()
    assert fut.result(timeout=5) == 'done'
    assert pool.invoke_and_wait([lambda: 'new'], timeout=5) == ['new']
    pool.shutdown()


def test_invoke_during_resize() -> None:
    pool = ThreadPool(1)
    stop = threading.Event()

    def resizer() -> None:
        size = 1
        while not stop.is_set():
            size = 3 - size
            pool.resize(size)

    t = threading.Thread(target=resizer)
    t.start()
    try:
        for i in range(200):
            assert pool.invoke_and_wait([lambda i=i: i, lambda: -1], timeout=5) == [i, -1]
    finally:
        stop.set()
        t.join()
    pool.shutdown()


def test_set_mkl_thread(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv('MKL_NUM_THREADS', raising=False)
    monkeypatch.delenv('OMP_NUM_THREADS', raising=False)
    pool = ThreadPool(1).set_mkl_thread(1)
    assert pool.mkl_threads == 1
    assert os.environ['MKL_NUM_THREADS'] == '1'
    assert os.environ['OMP_NUM_THREADS'] == '1'
    pool.shutdown()
