import threading

from dlengine.singleton import SingletonGuard


def test_first_caller_wins() -> None:
    guard = SingletonGuard()
    assert guard.check()
    assert not guard.check()
    assert not guard.check()
    assert guard.count == 3


def test_reset_cycles() -> None:
    guard = SingletonGuard()
    for _ in range(3):
        results = [guard.check() for _ in range(5)]
        assert results == [True, False, False, False, False]
        guard.reset()
        assert guard.count == 0


def test_concurrent_check() -> None:
    guard = SingletonGuard()
    results: list[bool] = []
    barrier = threading.Barrier(16)

    def run() -> None:
        barrier.wait()
        results.append(guard.check())

    threads = [threading.Thread(target=run) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == [False] * 15 + [True]
