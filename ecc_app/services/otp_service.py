"""One-time password issuance and verification.

Codes are never stored in clear text: the store keeps an HMAC-SHA256 digest
bound to the e-mail address, so a leaked record cannot be replayed.
"""

import hashlib
import hmac
import re
import secrets
import threading
from dataclasses import dataclass
from typing import Optional

from ecc_app.repositories import otp_repo

OTP_TTL_SECONDS = 5 * 60
OTP_MAX_ATTEMPTS = 3
OTP_COLLECTION = 'otp_codes'
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


@dataclass
class OtpVerification:
    verified: bool
    error: str = ''
    attempts_left: Optional[int] = None


def normalize_email(email):
    return str(email or '').strip().lower()


def is_valid_email(email):
    return bool(EMAIL_RE.match(str(email or '')))


def generate_otp():
    return str(100000 + secrets.randbelow(900000))


def hash_otp(email, otp, secret_key):
    message = f"{normalize_email(email)}:{otp}".encode('utf-8')
    return hmac.new(str(secret_key or '').encode('utf-8'), message, hashlib.sha256).hexdigest()


def record_id_for_email(email):
    return hashlib.sha256(normalize_email(email).encode('utf-8')).hexdigest()


class MemoryOtpStore:
    def __init__(self):
        self._records = {}
        self._lock = threading.Lock()

    def get(self, email):
        with self._lock:
            record = self._records.get(record_id_for_email(email))
            return dict(record) if record else None

    def put(self, email, record):
        with self._lock:
            self._records[record_id_for_email(email)] = dict(record)

    def delete(self, email):
        with self._lock:
            self._records.pop(record_id_for_email(email), None)

    def apply(self, email, update_fn):
        """Run ``update_fn`` on the current record under the store lock."""
        key = record_id_for_email(email)
        with self._lock:
            record = self._records.get(key)
            next_record, outcome = update_fn(dict(record) if record else None)
            if next_record is None:
                self._records.pop(key, None)
            else:
                self._records[key] = dict(next_record)
            return outcome

    def purge_expired(self, now_ts):
        with self._lock:
            expired = [key for key, record in self._records.items() if now_ts > record.get('expires_at', 0)]
            for key in expired:
                self._records.pop(key, None)
            return len(expired)


class FirestoreOtpStore:
    def __init__(self, db, firestore_module, collection_name=OTP_COLLECTION):
        self.db = db
        self.firestore_module = firestore_module
        self.collection_name = collection_name

    def get(self, email):
        snapshot = otp_repo.get_doc(self.db, self.collection_name, record_id_for_email(email))
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or None

    def put(self, email, record):
        otp_repo.set_doc(self.db, self.collection_name, record_id_for_email(email), record)

    def delete(self, email):
        otp_repo.delete_doc(self.db, self.collection_name, record_id_for_email(email))

    def apply(self, email, update_fn):
        ref = otp_repo.doc_ref(self.db, self.collection_name, record_id_for_email(email))

        @self.firestore_module.transactional
        def _txn(txn):
            snapshot = ref.get(transaction=txn)
            record = (snapshot.to_dict() or None) if snapshot.exists else None
            next_record, outcome = update_fn(record)
            if next_record is None:
                if record is not None:
                    txn.delete(ref)
            else:
                txn.set(ref, next_record)
            return outcome

        return _txn(self.db.transaction())

    def purge_expired(self, now_ts):
        # Firestore TTL policy on expires_at handles cleanup.
        return 0


def issue_otp(email, *, store, secret_key, time_module):
    otp = generate_otp()
    store.put(email, {
        'otp_hash': hash_otp(email, otp, secret_key),
        'expires_at': time_module.time() + OTP_TTL_SECONDS,
        'attempts': 0,
    })
    return otp


def apply_guess(record, email, otp, *, secret_key, now_ts):
    """Return ``(next_record, outcome)`` for one guess; a ``None`` record is deleted."""
    if not record:
        return None, OtpVerification(False, 'OTP not found or expired')

    if now_ts > float(record.get('expires_at', 0)):
        return None, OtpVerification(False, 'OTP has expired')

    attempts = int(record.get('attempts', 0) or 0)
    if attempts >= OTP_MAX_ATTEMPTS:
        return None, OtpVerification(False, 'Too many attempts. Please request a new OTP')

    expected = str(record.get('otp_hash', ''))
    if not hmac.compare_digest(expected, hash_otp(email, str(otp).strip(), secret_key)):
        attempts += 1
        return {**record, 'attempts': attempts}, OtpVerification(
            False, 'Invalid OTP', attempts_left=OTP_MAX_ATTEMPTS - attempts
        )

    return None, OtpVerification(True)


def verify_otp(email, otp, *, store, secret_key, time_module):
    # Read, compare and count happen in one store step so parallel guesses
    # cannot share an attempt.
    now_ts = time_module.time()
    return store.apply(
        email,
        lambda record: apply_guess(record, email, otp, secret_key=secret_key, now_ts=now_ts),
    )
