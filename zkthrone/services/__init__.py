"""Room domain services: registry, lifecycle, rounds and submissions.

This package contains the coordinator logic imported by HTTP routes and
socket handlers, keeping transport concerns separated from room mechanics.
"""

from dataclasses import dataclass
import logging

from .attestation import Ed25519AttestationSigner
from .lifecycle import RoomLifecycle
from .nonces import DatabaseNonceIssuer, MemoryNonceIssuer
from .proofs import BarretenbergProofSubsystem, DigestProofSubsystem
from .rooms import RoomRegistry, epoch_ms
from .rounds import RoundCoordinator
from .scheduler import CountdownScheduler
from .submission import SubmissionPipeline
from .trials import TrialAnswerKey


@dataclass
class Coordinator:
    registry: RoomRegistry
    lifecycle: RoomLifecycle
    rounds: RoundCoordinator
    pipeline: SubmissionPipeline
    scheduler: CountdownScheduler
    answer_key: TrialAnswerKey
    proofs: object
    nonces: object
    signer: Ed25519AttestationSigner


def build_proof_subsystem(config, logger):
    backend = config.get('PROOF_BACKEND', 'digest')
    if backend == 'bb':
        return BarretenbergProofSubsystem(
            circuit_dir=config.get('CIRCUIT_DIR'),
            bb_path=config.get('BB_PATH', 'bb'),
            timeout_sec=float(config.get('BB_TIMEOUT_SEC', 120)),
            logger=logger,
        )
    if backend == 'digest':
        return DigestProofSubsystem(str(config.get('PROOF_SECRET')).encode('utf-8'), logger=logger)
    raise ValueError(f'Unknown PROOF_BACKEND: {backend}')


def build_coordinator(config, logger=None, notifier=None, start_task=None, sleep=None, clock=epoch_ms):
    """Wire the room services from a Flask config mapping."""
    logger = logger or logging.getLogger('zkthrone')

    testing = bool(config.get('TESTING'))
    scheduler_kwargs = {
        'enabled': not testing or bool(config.get('ENABLE_SCHEDULER_IN_TESTS')),
        'inline': testing,
        'heartbeat_sec': int(config.get('TIMER_HEARTBEAT_SEC', 0)),
        'logger': logger,
    }
    if start_task is not None:
        scheduler_kwargs['start_task'] = start_task
    if sleep is not None:
        scheduler_kwargs['sleep'] = sleep
    scheduler = CountdownScheduler(**scheduler_kwargs)

    registry = RoomRegistry(
        clock=clock,
        logger=logger,
        notifier=notifier,
        countdown_ms=int(config.get('COUNTDOWN_MS', 15000)),
        default_max_players=int(config.get('DEFAULT_MAX_PLAYERS', 4)),
        default_total_rounds=int(config.get('DEFAULT_TOTAL_ROUNDS', 7)),
        waiting_ttl_sec=int(config.get('WAITING_ROOM_TTL_SEC', 0)),
        finished_ttl_sec=int(config.get('FINISHED_ROOM_TTL_SEC', 0)),
    )
    lifecycle = RoomLifecycle(registry, scheduler, min_players=int(config.get('MIN_PLAYERS', 2)), logger=logger)
    rounds = RoundCoordinator(registry, lifecycle, logger=logger)

    answer_key = TrialAnswerKey(strict=bool(config.get('STRICT_TRIAL_MATCHING')), logger=logger)
    proofs = build_proof_subsystem(config, logger)
    if config.get('NONCE_BACKEND', 'database') == 'memory':
        nonces = MemoryNonceIssuer()
    else:
        nonces = DatabaseNonceIssuer()
    signer = Ed25519AttestationSigner.from_hex(config.get('ATTESTATION_SIGNING_KEY'), logger=logger)
    pipeline = SubmissionPipeline(rounds, answer_key, proofs, nonces, signer, logger=logger)

    return Coordinator(
        registry=registry,
        lifecycle=lifecycle,
        rounds=rounds,
        pipeline=pipeline,
        scheduler=scheduler,
        answer_key=answer_key,
        proofs=proofs,
        nonces=nonces,
        signer=signer,
    )
