from unittest.mock import MagicMock

import pytest

from app.client.poller import AttributePoller


def test_interval_must_be_positive(scheduler):
    with pytest.raises(ValueError):
        AttributePoller(lambda: {}, scheduler, interval_s=0)


def test_first_fetch_is_immediate_then_periodic(scheduler):
    fetch = MagicMock(return_value={"fan_1_cmd": True})
    poller = AttributePoller(fetch, scheduler, interval_s=5)
    received = []
    poller.subscribe(received.append)

    poller.start()
    scheduler.advance(0)
    assert fetch.call_count == 1
    assert received == [{"fan_1_cmd": True}]

    scheduler.advance(4.9)
    assert fetch.call_count == 1
    scheduler.advance(0.2)
    assert fetch.call_count == 2
    assert poller.last_attributes == {"fan_1_cmd": True}


def test_start_twice_does_not_double_schedule(scheduler):
    fetch = MagicMock(return_value={})
    poller = AttributePoller(fetch, scheduler)
    poller.start()
    poller.start()
    scheduler.advance(0)
    assert fetch.call_count == 1


def test_failed_fetch_is_skipped_and_retried(scheduler):
    fetch = MagicMock(side_effect=[ConnectionError("down"), {"light_1_cmd": 1}])
    poller = AttributePoller(fetch, scheduler, interval_s=5)
    subscriber = MagicMock()
    poller.subscribe(subscriber)

    poller.start()
    scheduler.advance(0)
    assert poller.consecutive_failures == 1
    subscriber.assert_not_called()

    scheduler.advance(5)
    assert poller.consecutive_failures == 0
    subscriber.assert_called_once_with({"light_1_cmd": 1})


def test_refetch_is_debounced(scheduler):
    fetch = MagicMock(return_value={})
    poller = AttributePoller(fetch, scheduler)

    poller.schedule_refetch(1.2)
    scheduler.advance(1.0)
    poller.schedule_refetch(0.9)
    scheduler.advance(0.5)
    assert fetch.call_count == 0
    scheduler.advance(0.5)
    assert fetch.call_count == 1
    assert scheduler.pending == 0


def test_failing_subscriber_does_not_starve_others(scheduler):
    poller = AttributePoller(lambda: {"a": 1}, scheduler)
    healthy = MagicMock()
    poller.subscribe(MagicMock(side_effect=RuntimeError("boom")))
    poller.subscribe(healthy)

    assert poller.refresh_now() == {"a": 1}
    healthy.assert_called_once_with({"a": 1})


def test_unsubscribe(scheduler):
    poller = AttributePoller(lambda: {"a": 1}, scheduler)
    subscriber = MagicMock()
    unsubscribe = poller.subscribe(subscriber)
    unsubscribe()
    unsubscribe()
    poller.refresh_now()
    subscriber.assert_not_called()


def test_stop_cancels_pending_work(scheduler):
    fetch = MagicMock(return_value={})
    poller = AttributePoller(fetch, scheduler)
    poller.start()
    poller.schedule_refetch(1)
    poller.stop()

    scheduler.advance(30)
    fetch.assert_not_called()
    assert not poller.is_running
