import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Only attestation nonces are stored; rooms are in memory
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///zkthrone.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    # Room defaults
    COUNTDOWN_MS = int(os.environ.get('COUNTDOWN_MS', '15000'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    DEFAULT_MAX_PLAYERS = int(os.environ.get('DEFAULT_MAX_PLAYERS', '4'))
    DEFAULT_TOTAL_ROUNDS = int(os.environ.get('DEFAULT_TOTAL_ROUNDS', '7'))
    # Room expiry (seconds). 0 disables.
    WAITING_ROOM_TTL_SEC = int(os.environ.get('WAITING_ROOM_TTL_SEC', '1800'))
    FINISHED_ROOM_TTL_SEC = int(os.environ.get('FINISHED_ROOM_TTL_SEC', '3600'))
    # Optional: heartbeat interval for countdown timer logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Trials
    STRICT_TRIAL_MATCHING = os.environ.get('STRICT_TRIAL_MATCHING', 'false').lower() == 'true'
    # Proofs: 'digest' (in process) or 'bb' (Barretenberg CLI)
    PROOF_BACKEND = os.environ.get('PROOF_BACKEND', 'digest')
    PROOF_SECRET = os.environ.get('PROOF_SECRET') or SECRET_KEY
    BB_PATH = os.environ.get('BB_PATH', 'bb')
    CIRCUIT_DIR = os.environ.get('CIRCUIT_DIR', '../noir-circuits/trial_proof')
    BB_TIMEOUT_SEC = int(os.environ.get('BB_TIMEOUT_SEC', '120'))
    # Attestations: 'database' or 'memory' nonce storage, hex Ed25519 seed
    NONCE_BACKEND = os.environ.get('NONCE_BACKEND', 'database')
    ATTESTATION_SIGNING_KEY = os.environ.get('ATTESTATION_SIGNING_KEY')
