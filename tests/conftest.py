import os
import sys
import pytest

# Ensure the project root (containing the `zkthrone` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from zkthrone import create_app, db, socketio
from zkthrone.services import (
    CountdownScheduler,
    DigestProofSubsystem,
    Ed25519AttestationSigner,
    MemoryNonceIssuer,
    RoomLifecycle,
    RoomRegistry,
    RoundCoordinator,
    SubmissionPipeline,
    TrialAnswerKey,
)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    COUNTDOWN_MS = 15000
    MIN_PLAYERS = 2
    DEFAULT_MAX_PLAYERS = 4
    DEFAULT_TOTAL_ROUNDS = 7
    WAITING_ROOM_TTL_SEC = 0
    FINISHED_ROOM_TTL_SEC = 0
    PROOF_BACKEND = 'digest'
    PROOF_SECRET = 'test-proof-secret'
    NONCE_BACKEND = 'database'
    ATTESTATION_SIGNING_KEY = '11' * 32


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import zkthrone.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def coordinator(flask_app):
    return flask_app.extensions['zkthrone']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


A = 'GAAAAPLAYERONE'
B = 'GBBBBPLAYERTWO'


class FakeClock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingProofs:
    """Wraps the digest backend and counts calls."""

    name = 'recording'

    def __init__(self, fail_generate=False, fail_verify=False):
        self.inner = DigestProofSubsystem(b'unit-test-secret')
        self.fail_generate = fail_generate
        self.fail_verify = fail_verify
        self.generated = 0
        self.verified = 0

    def generate(self, solution, solution_hash, wallet, round_id):
        self.generated += 1
        if self.fail_generate:
            raise RuntimeError('prover crashed')
        return self.inner.generate(solution, solution_hash, wallet, round_id)

    def verify(self, artifact):
        self.verified += 1
        if self.fail_verify:
            return False
        return self.inner.verify(artifact)


class Services:
    def __init__(self, clock, proofs=None, scheduler=None, countdown_ms=15000):
        self.clock = clock
        self.registry = RoomRegistry(clock=clock, countdown_ms=countdown_ms)
        self.scheduler = scheduler or CountdownScheduler(enabled=False)
        self.lifecycle = RoomLifecycle(self.registry, self.scheduler)
        self.rounds = RoundCoordinator(self.registry, self.lifecycle)
        self.answer_key = TrialAnswerKey()
        self.proofs = proofs or RecordingProofs()
        self.nonces = MemoryNonceIssuer()
        self.signer = Ed25519AttestationSigner(seed=b'\x22' * 32)
        self.pipeline = SubmissionPipeline(
            self.rounds, self.answer_key, self.proofs, self.nonces, self.signer
        )

    def running_room(self, wallets=(A, B), total_rounds=2, max_players=4):
        created = self.registry.create_room(wallets[0], max_players=max_players, total_rounds=total_rounds)
        for w in wallets[1:]:
            self.registry.join_room(created.room_id, w)
        self.lifecycle.start_game(created.room_id, wallets[0])
        assert self.lifecycle.begin_game(created.room_id)
        return created.room_id


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def services(clock):
    return Services(clock)
