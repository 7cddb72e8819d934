"""Unit tests for Observable."""

from patient_ledger.domain.observable import Observable


class TestObservable:
    """Test suite for last-value-cached observables."""

    def test_initial_value(self):
        assert Observable(5).value == 5

    def test_new_subscriber_receives_current_value(self):
        observable = Observable("a")
        observable.set("b")
        received = []
        observable.subscribe(received.append)
        assert received == ["b"]

    def test_subscribers_receive_changes_in_order(self):
        observable = Observable(0)
        received = []
        observable.subscribe(received.append)
        observable.set(1)
        observable.set(2)
        assert received == [0, 1, 2]

    def test_unsubscribe_stops_delivery(self):
        observable = Observable(0)
        received = []
        unsubscribe = observable.subscribe(received.append)
        unsubscribe()
        observable.set(1)
        assert received == [0]
        assert observable.subscriber_count == 0

    def test_unsubscribe_twice_is_harmless(self):
        observable = Observable(0)
        unsubscribe = observable.subscribe(lambda _: None)
        unsubscribe()
        unsubscribe()
        assert observable.subscriber_count == 0

    def test_failing_subscriber_does_not_break_others(self, caplog):
        observable = Observable(0, name="counter")
        received = []

        def broken(_):
            raise RuntimeError("boom")

        observable.subscribe(broken)
        observable.subscribe(received.append)
        observable.set(1)

        assert observable.value == 1
        assert received == [0, 1]
        assert "counter" in caplog.text
