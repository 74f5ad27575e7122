from musicmotion_keys.scheduler import DeferredScheduler


def test_fires_in_due_order(scheduler, clock):
    fired = []
    scheduler.call_later(30, fired.append, "b")
    scheduler.call_later(10, fired.append, "a")
    scheduler.call_later(30, fired.append, "c")
    assert scheduler.run_pending() == 0
    clock.advance(30)
    assert scheduler.run_pending() == 3
    assert fired == ["a", "b", "c"]


def test_not_fired_before_due(scheduler, clock):
    fired = []
    scheduler.call_later(100, fired.append, 1)
    clock.advance(99)
    scheduler.run_pending()
    assert fired == []
    assert scheduler.next_due() == clock.now_ms + 1


def test_cancel(scheduler, clock):
    fired = []
    handle = scheduler.call_later(10, fired.append, 1)
    scheduler.cancel(handle)
    scheduler.cancel(None)
    clock.advance(50)
    scheduler.run_pending()
    assert fired == []
    assert not handle.pending
    assert scheduler.next_due() is None


def test_cancel_all_counts_pending(scheduler, clock):
    fired = []
    for i in range(3):
        scheduler.call_later(10 * (i + 1), fired.append, i)
    clock.advance(10)
    scheduler.run_pending()
    assert scheduler.cancel_all() == 2
    assert scheduler.pending_count() == 0
    clock.advance(100)
    scheduler.run_pending()
    assert fired == [0]


def test_callbacks_can_schedule_more(scheduler, clock):
    fired = []

    def first():
        fired.append("first")
        scheduler.call_later(0, fired.append, "second")

    scheduler.call_later(5, first)
    clock.advance(5)
    scheduler.run_pending()
    assert fired == ["first", "second"]


def test_run_pending_with_explicit_time(clock):
    s = DeferredScheduler(clock=clock)
    fired = []
    s.call_at(clock.now_ms + 500, fired.append, "x")
    s.run_pending(now_ms=clock.now_ms + 500)
    assert fired == ["x"]
