import threading

from ecc_app.services import otp_service
from ecc_app.services.otp_service import FirestoreOtpStore, MemoryOtpStore, OTP_MAX_ATTEMPTS, OTP_TTL_SECONDS

SECRET = "unit-secret"


def _issue(store, clock, email="Educator@School.edu"):
    return otp_service.issue_otp(email, store=store, secret_key=SECRET, time_module=clock)


def _verify(store, clock, code, email="educator@school.edu"):
    return otp_service.verify_otp(email, code, store=store, secret_key=SECRET, time_module=clock)


def test_generated_codes_are_six_digits():
    for _ in range(50):
        code = otp_service.generate_otp()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_store_keeps_only_a_digest(clock):
    store = MemoryOtpStore()

    code = _issue(store, clock)
    record = store.get("educator@school.edu")

    assert code not in str(record)
    assert record["attempts"] == 0
    assert record["expires_at"] == clock.now + OTP_TTL_SECONDS


def test_valid_code_verifies_once(clock):
    store = MemoryOtpStore()
    code = _issue(store, clock)

    assert _verify(store, clock, code).verified is True
    second = _verify(store, clock, code)
    assert second.verified is False
    assert second.error == "OTP not found or expired"


def test_expired_code_is_removed(clock):
    store = MemoryOtpStore()
    code = _issue(store, clock)
    clock.advance(OTP_TTL_SECONDS + 1)

    outcome = _verify(store, clock, code)

    assert outcome.error == "OTP has expired"
    assert store.get("educator@school.edu") is None


def test_wrong_codes_count_attempts_then_lock(clock):
    store = MemoryOtpStore()
    code = _issue(store, clock)
    wrong = "000000" if code != "000000" else "111111"

    left = [_verify(store, clock, wrong).attempts_left for _ in range(3)]
    locked = _verify(store, clock, code)

    assert left == [2, 1, 0]
    assert locked.error == "Too many attempts. Please request a new OTP"
    assert store.get("educator@school.edu") is None


def test_email_validation():
    assert otp_service.is_valid_email("a@b.co")
    assert not otp_service.is_valid_email("a@b")
    assert not otp_service.is_valid_email("a b@c.de")


def test_purge_expired(clock):
    store = MemoryOtpStore()
    _issue(store, clock, "one@x.org")
    clock.advance(OTP_TTL_SECONDS + 1)
    _issue(store, clock, "two@x.org")

    assert store.purge_expired(clock.now) == 1
    assert store.get("two@x.org") is not None


class _SlowUpdateStore(MemoryOtpStore):
    """Widens the gap between reading a record and writing it back."""

    def apply(self, email, update_fn):
        def _slow(record):
            threading.Event().wait(0.01)
            return update_fn(record)

        return super().apply(email, _slow)


def test_parallel_wrong_guesses_share_the_attempt_cap(clock):
    store = _SlowUpdateStore()
    code = _issue(store, clock)
    wrong = "000000" if code != "000000" else "111111"
    barrier = threading.Barrier(6)
    outcomes = []

    def _guess():
        barrier.wait()
        outcomes.append(_verify(store, clock, wrong).error)

    threads = [threading.Thread(target=_guess) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("Invalid OTP") == OTP_MAX_ATTEMPTS
    assert outcomes.count("Too many attempts. Please request a new OTP") == 1
    assert outcomes.count("OTP not found or expired") == 2
    assert _verify(store, clock, code).verified is False


class _TransactionalModule:
    @staticmethod
    def transactional(fn):
        return fn


def test_firestore_store_counts_attempts_in_a_transaction(fake_db, clock):
    store = FirestoreOtpStore(fake_db, _TransactionalModule)
    code = _issue(store, clock)
    wrong = "000000" if code != "000000" else "111111"
    path = f"otp_codes/{otp_service.record_id_for_email('educator@school.edu')}"

    outcome = _verify(store, clock, wrong)

    assert outcome.attempts_left == 2
    assert fake_db.docs[path]["attempts"] == 1
    assert _verify(store, clock, code).verified is True
    assert path not in fake_db.docs
