import threading

from ecc_app.services import rate_limit_service
from ecc_app.services.rate_limit_service import RateLimitRule


def _check(rule, actor, events, clock, db=None):
    return rate_limit_service.check_rate_limit(
        rule,
        actor,
        db=db,
        firestore_module=None,
        counter_collection="rate_limit_counters",
        in_memory_events=events,
        in_memory_lock=threading.Lock(),
        time_module=clock,
    )


def test_memory_window_blocks_then_recovers(clock):
    rule = RateLimitRule("otp_email", 2, 60)
    events = {}

    assert _check(rule, "a@b.co", events, clock) == (True, 0)
    assert _check(rule, "a@b.co", events, clock) == (True, 0)
    allowed, retry_after = _check(rule, "a@b.co", events, clock)
    assert allowed is False
    assert retry_after == 60

    clock.advance(61)
    assert _check(rule, "a@b.co", events, clock) == (True, 0)


def test_actors_are_isolated(clock):
    rule = RateLimitRule("generate", 1, 60)
    events = {}

    assert _check(rule, "u1", events, clock)[0] is True
    assert _check(rule, "u2", events, clock)[0] is True
    assert _check(rule, "u1", events, clock)[0] is False


def test_key_normalization():
    rule = RateLimitRule("otp_ip", 1, 60)

    assert rate_limit_service.build_key(rule, " 10.0.0.1 ") == "otp_ip:10.0.0.1"
    assert rate_limit_service.build_key(rule, "") == "otp_ip:anon"
    assert rate_limit_service.build_key(rule, "Some User/Name") == "otp_ip:some_user_name"
