"""Per-wallet monotonically increasing nonces for attestation replay protection."""

from typing import Dict
import threading

from zkthrone import db
from zkthrone.models import WalletNonce


class MemoryNonceIssuer:
    def __init__(self):
        self._nonces: Dict[str, int] = {}
        self._lock = threading.Lock()

    def next(self, wallet: str) -> int:
        with self._lock:
            value = self._nonces.get(wallet, 0) + 1
            self._nonces[wallet] = value
            return value

    def current(self, wallet: str) -> int:
        with self._lock:
            return self._nonces.get(wallet, 0)

    def reset(self, wallet: str) -> None:
        with self._lock:
            self._nonces.pop(wallet, None)


class DatabaseNonceIssuer:
    """Nonces stored in the ``wallet_nonce`` table. Requires an app context."""

    def __init__(self):
        self._lock = threading.Lock()

    def next(self, wallet: str) -> int:
        with self._lock:
            try:
                row = db.session.get(WalletNonce, wallet)
                if row is None:
                    row = WalletNonce(wallet=wallet, nonce=0)
                row.nonce = int(row.nonce or 0) + 1
                db.session.add(row)
                db.session.commit()
                return row.nonce
            except Exception:
                db.session.rollback()
                raise

    def current(self, wallet: str) -> int:
        row = db.session.get(WalletNonce, wallet)
        return int(row.nonce) if row else 0

    def reset(self, wallet: str) -> None:
        with self._lock:
            WalletNonce.query.filter_by(wallet=wallet).delete()
            db.session.commit()
