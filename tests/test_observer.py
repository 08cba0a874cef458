"""Tests for the Observable/Observer abstractions."""

from home_rules.core.observer import Observable, Observer


class RecordingObserver(Observer):
    """Observer that records what it saw."""

    def __init__(self, name, log):
        self.name = name
        self.log = log

    def on_notify(self, subject):
        self.log.append((self.name, subject))
        return self.name


class FailingObserver(Observer):
    """Observer that always raises."""

    def on_notify(self, subject):
        raise RuntimeError("boom")


class TestObservable:
    """Tests for Observable."""

    def test_subscribe_is_idempotent(self):
        """Test subscribing twice keeps one entry."""
        subject = Observable()
        observer = RecordingObserver("a", [])

        assert subject.subscribe(observer) is True
        assert subject.subscribe(observer) is False
        assert subject.observers == [observer]

    def test_unsubscribe_is_idempotent(self):
        """Test unsubscribing an unknown observer is harmless."""
        subject = Observable()
        observer = RecordingObserver("a", [])
        subject.subscribe(observer)

        assert subject.unsubscribe(observer) is True
        assert subject.unsubscribe(observer) is False
        assert subject.observers == []

    def test_notify_in_subscription_order(self):
        """Test observers run in the order they subscribed."""
        log = []
        subject = Observable()
        for name in ("first", "second", "third"):
            subject.subscribe(RecordingObserver(name, log))

        results = subject.notify("payload")

        assert results == ["first", "second", "third"]
        assert log == [("first", "payload"), ("second", "payload"), ("third", "payload")]

    def test_failing_observer_is_isolated(self):
        """Test one failing observer does not stop the others."""
        log = []
        subject = Observable()
        subject.subscribe(RecordingObserver("before", log))
        subject.subscribe(FailingObserver())
        subject.subscribe(RecordingObserver("after", log))

        results = subject.notify(1)

        assert results == ["before", "after"]
        assert [name for name, _ in log] == ["before", "after"]

    def test_unsubscribe_during_notify(self):
        """Test an observer removing itself mid-notify does not skip others."""
        log = []
        subject = Observable()

        class SelfRemoving(Observer):
            def on_notify(self, payload):
                subject.unsubscribe(self)
                log.append("removed")

        subject.subscribe(SelfRemoving())
        subject.subscribe(RecordingObserver("other", log))

        subject.notify(None)

        assert log == ["removed", ("other", None)]
        assert len(subject.observers) == 1
