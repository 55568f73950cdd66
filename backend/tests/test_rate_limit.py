"""Tests for the rate gate and lockout tracker."""
import threading

from access_gateway.rate_limit import LockoutTracker, RateGate


class TestRateGate:
    def test_allows_up_to_ceiling_then_limits(self, gate):
        results = [gate.check_and_consume("login:a@x.com", 60, 5) for _ in range(6)]
        assert results == [False] * 5 + [True]

    def test_limited_requests_do_not_count(self, gate):
        for _ in range(5):
            gate.check_and_consume("k", 60, 5)
        for _ in range(3):
            assert gate.check_and_consume("k", 60, 5) is True
        assert gate.remaining("k", 60, 5) == 0

    def test_new_window_after_expiry(self, gate, clock):
        for _ in range(6):
            gate.check_and_consume("k", 60, 5)
        clock.advance(60)
        assert gate.check_and_consume("k", 60, 5) is False
        assert gate.remaining("k", 60, 5) == 4

    def test_window_still_open_just_before_expiry(self, gate, clock):
        for _ in range(5):
            gate.check_and_consume("k", 60, 5)
        clock.advance(59.9)
        assert gate.check_and_consume("k", 60, 5) is True

    def test_keys_are_independent(self, gate):
        for _ in range(5):
            gate.check_and_consume("login:a@x.com", 60, 5)
        assert gate.check_and_consume("login:a@x.com", 60, 5) is True
        assert gate.check_and_consume("reset:a@x.com", 60, 5) is False
        assert gate.check_and_consume("login:b@x.com", 60, 5) is False

    def test_remaining_for_unknown_key(self, gate):
        assert gate.remaining("never-seen", 60, 5) == 5

    def test_concurrent_callers_never_exceed_ceiling(self, clock):
        gate = RateGate(clock=clock)
        accepted = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                if not gate.check_and_consume("hot", 60, 100):
                    with lock:
                        accepted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(accepted) == 100


class TestLockoutTracker:
    def test_locks_at_threshold(self, lockout):
        for _ in range(4):
            assert lockout.record_failure("a@x.com") is False
        assert lockout.is_locked_out("a@x.com") is False
        assert lockout.failures("a@x.com") == 4

        assert lockout.record_failure("a@x.com") is True
        assert lockout.is_locked_out("a@x.com") is True

    def test_unlocks_after_duration_and_purges(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure("a@x.com")
        clock.advance(15 * 60 - 1)
        assert lockout.is_locked_out("a@x.com") is True
        clock.advance(1)
        assert lockout.is_locked_out("a@x.com") is False
        assert lockout.failures("a@x.com") == 0

    def test_failures_while_locked_do_not_extend(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure("a@x.com")
        clock.advance(10 * 60)
        assert lockout.record_failure("a@x.com") is True
        clock.advance(5 * 60)
        assert lockout.is_locked_out("a@x.com") is False

    def test_retry_after(self, lockout, clock):
        assert lockout.retry_after("a@x.com") == 0
        for _ in range(5):
            lockout.record_failure("a@x.com")
        clock.advance(60.5)
        assert lockout.retry_after("a@x.com") == 14 * 60
        clock.advance(14 * 60)
        assert lockout.retry_after("a@x.com") == 0

    def test_success_clears_failures_and_lock(self, lockout):
        for _ in range(3):
            lockout.record_failure("a@x.com")
        lockout.record_success("a@x.com")
        assert lockout.failures("a@x.com") == 0

        for _ in range(5):
            lockout.record_failure("a@x.com")
        lockout.record_success("a@x.com")
        assert lockout.is_locked_out("a@x.com") is False

    def test_success_is_idempotent(self, lockout):
        lockout.record_success("nobody@x.com")
        lockout.record_success("nobody@x.com")
        assert lockout.is_locked_out("nobody@x.com") is False

    def test_failure_after_unpurged_expiry_starts_fresh(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure("a@x.com")
        clock.advance(16 * 60)
        assert lockout.record_failure("a@x.com") is False
        assert lockout.failures("a@x.com") == 1

    def test_identities_are_independent(self, lockout):
        for _ in range(5):
            lockout.record_failure("a@x.com")
        assert lockout.is_locked_out("b@x.com") is False

    def test_concurrent_failures_are_all_counted(self, clock):
        tracker = LockoutTracker(threshold=10_000, lockout_seconds=60, clock=clock)

        def worker():
            for _ in range(100):
                tracker.record_failure("a@x.com")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert tracker.failures("a@x.com") == 800
