import threading

import pytest

from duoserve.threadpool import ThreadPool


def test_all_tasks_run():
    results = []
    lock = threading.Lock()
    done = threading.Event()
    total = 20

    def make_task(value):
        def task():
            with lock:
                results.append(value)
                if len(results) == total:
                    done.set()

        return task

    with ThreadPool(3) as pool:
        for value in range(total):
            assert pool.enqueue(make_task(value)) is True
        assert done.wait(5)
    assert sorted(results) == list(range(total))


def test_tasks_run_on_worker_threads():
    names = []
    done = threading.Event()

    def task():
        names.append(threading.current_thread().name)
        done.set()

    with ThreadPool(1) as pool:
        assert pool.enqueue(task) is True
        assert done.wait(5)
    assert len(names) == 1
    assert names[0] != threading.main_thread().name
    assert names[0].startswith("pool-worker-")


def test_enqueue_after_shutdown_is_ignored():
    ran = threading.Event()
    pool = ThreadPool(2)
    pool.shutdown()
    assert pool.enqueue(ran.set) is False
    assert not ran.wait(0.2)


def test_context_manager_shuts_down():
    with ThreadPool(1) as pool:
        pass
    assert pool.enqueue(lambda: None) is False


def test_negative_thread_count_rejected():
    with pytest.raises(ValueError):
        ThreadPool(-1)


def test_zero_workers_never_run_tasks():
    ran = threading.Event()
    pool = ThreadPool(0)
    assert pool.enqueue(ran.set) is True
    assert not ran.wait(0.2)
    pool.shutdown()


def test_failing_task_does_not_kill_worker():
    done = threading.Event()

    def boom():
        raise RuntimeError("boom")

    with ThreadPool(1) as pool:
        pool.enqueue(boom)
        pool.enqueue(done.set)
        assert done.wait(5)


def test_shutdown_from_worker_does_not_deadlock():
    done = threading.Event()
    pool = ThreadPool(2)

    def task():
        pool.shutdown()
        done.set()

    pool.enqueue(task)
    assert done.wait(5)
    assert pool.enqueue(lambda: None) is False


def test_shutdown_is_idempotent():
    pool = ThreadPool(2)
    pool.shutdown()
    pool.shutdown()
    assert pool.enqueue(lambda: None) is False