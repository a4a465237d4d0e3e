"""Tests for the in-memory chat session registry."""

import threading

from training_planner.api.dependencies import SessionRegistry


class Ticker:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_same_key_returns_same_session():
    registry = SessionRegistry(idle_seconds=60)

    first = registry.get_or_create("plan-1", "user-1", object)
    second = registry.get_or_create("plan-1", "user-1", object)

    assert first is second
    assert registry.get_or_create("plan-1", "user-2", object) is not first


def test_idle_sessions_are_evicted():
    ticker = Ticker()
    registry = SessionRegistry(idle_seconds=60, clock=ticker)
    first = registry.get_or_create("plan-1", "user-1", object)

    ticker.now = 61
    assert registry.evict_idle() == 1
    assert len(registry) == 0
    assert registry.get_or_create("plan-1", "user-1", object) is not first


def test_recent_use_keeps_session_alive():
    ticker = Ticker()
    registry = SessionRegistry(idle_seconds=60, clock=ticker)
    registry.get_or_create("plan-1", "user-1", object)

    ticker.now = 50
    with registry.checkout("plan-1", "user-1", object):
        pass
    ticker.now = 100

    assert registry.evict_idle() == 0


def test_session_in_use_is_not_evicted():
    ticker = Ticker()
    registry = SessionRegistry(idle_seconds=60, clock=ticker)

    with registry.checkout("plan-1", "user-1", object):
        ticker.now = 500
        assert registry.evict_idle() == 0
        assert len(registry) == 1


def test_checkout_serializes_requests_on_one_session():
    registry = SessionRegistry(idle_seconds=60)
    entered = threading.Event()
    release = threading.Event()
    order: list[str] = []

    def first_request():
        with registry.checkout("plan-1", "user-1", object):
            order.append("first-start")
            entered.set()
            release.wait(timeout=5)
            order.append("first-end")

    worker = threading.Thread(target=first_request)
    worker.start()
    entered.wait(timeout=5)

    def second_request():
        with registry.checkout("plan-1", "user-1", object):
            order.append("second")

    waiter = threading.Thread(target=second_request)
    waiter.start()
    waiter.join(timeout=0.2)
    assert waiter.is_alive()

    release.set()
    worker.join(timeout=5)
    waiter.join(timeout=5)

    assert order == ["first-start", "first-end", "second"]
