import os
import subprocess
import threading

import pytest

from conftest import A, B, FakeClock, RecordingProofs, Services
from zkthrone.errors import (
    Forbidden,
    IncorrectSolution,
    InvalidState,
    ProofGenerationFailure,
    ProofVerificationFailure,
    RoomNotFound,
)
from zkthrone.models import RoomState
from zkthrone.services import CountdownScheduler
from zkthrone.services.attestation import attestation_message
from zkthrone.services.proofs import BarretenbergProofSubsystem, ProofArtifact
from zkthrone.services.submission import solution_hash_for


def test_join_code_is_fixed_length_prefix(services):
    for i in range(25):
        created = services.registry.create_room(f'GHOST{i}')
        assert len(created.join_code) == 6
        assert created.room_id.startswith(created.join_code)


def test_countdown_fires_after_fifteen_seconds(clock):
    sleeps = []
    scheduler = CountdownScheduler(enabled=True, inline=True, sleep=sleeps.append)
    svc = Services(clock, scheduler=scheduler)
    room_id = svc.registry.create_room(A).room_id
    svc.registry.join_room(room_id, B)

    started = svc.lifecycle.start_game(room_id, A)
    assert started.countdown_ends_at == clock.now + 15000
    # Inline scheduler slept the whole countdown and then began the game
    assert sleeps == [15.0]
    room = svc.registry.get(room_id)
    assert room.state == RoomState.IN_PROGRESS
    assert room.current_round == 1
    assert scheduler.pending() == set()


def test_begin_game_is_fire_once(services):
    room_id = services.registry.create_room(A).room_id
    services.registry.join_room(room_id, B)
    services.lifecycle.start_game(room_id, A)
    token = services.registry.get(room_id).countdown_started_at

    assert services.lifecycle.begin_game(room_id, token) is True
    assert services.lifecycle.begin_game(room_id, token) is False
    assert services.registry.get(room_id).current_round == 1


def test_begin_game_ignores_stale_token_and_deleted_room(services):
    room_id = services.registry.create_room(A).room_id
    services.registry.join_room(room_id, B)
    services.lifecycle.start_game(room_id, A)
    token = services.registry.get(room_id).countdown_started_at

    assert services.lifecycle.begin_game(room_id, token - 1) is False
    assert services.registry.get(room_id).state == RoomState.COUNTDOWN

    services.registry.delete_room(room_id)
    assert services.lifecycle.begin_game(room_id, token) is False


def test_start_game_errors(services):
    room_id = services.registry.create_room(A).room_id
    services.registry.join_room(room_id, B)
    with pytest.raises(Forbidden):
        services.lifecycle.start_game(room_id, B)
    with pytest.raises(RoomNotFound):
        services.lifecycle.start_game('MISSING1', A)


def test_barrier_waits_for_every_player(services):
    room_id = services.running_room(wallets=(A, B, 'GCCCCPLAYER'), total_rounds=3)

    assert services.rounds.record_accepted_submission(room_id, A, 1).round_complete is False
    assert services.rounds.record_accepted_submission(room_id, B, 1).round_complete is False
    status = services.rounds.get_round_status(room_id)
    assert (status.current_round, status.submitted_count, status.all_submitted) == (1, 2, False)
    assert set(status.to_dict()) == {'currentRound', 'totalPlayers', 'submittedCount', 'allSubmitted'}

    assert services.rounds.record_accepted_submission(room_id, 'GCCCCPLAYER', 1).round_complete is True
    assert services.rounds.get_round_status(room_id).current_round == 2


def test_submission_for_other_round_is_rejected(services):
    room_id = services.running_room()
    with pytest.raises(InvalidState):
        services.rounds.record_accepted_submission(room_id, A, 2)
    assert services.registry.get(room_id).players[0].score == 0


def test_repeat_submission_keeps_score(services):
    room_id = services.running_room()
    services.rounds.record_accepted_submission(room_id, A, 1)
    services.rounds.record_accepted_submission(room_id, B, 1)
    # Round has moved on; replaying round 1 stays a no-op
    outcome = services.rounds.record_accepted_submission(room_id, A, 1)
    assert outcome.already_submitted is True
    assert outcome.round_complete is False
    assert services.registry.get(room_id).players[0].score == 1


def test_concurrent_final_submissions_advance_once():
    wallets = tuple(f'GPLAYER{i:02d}' for i in range(8))
    svc = Services(FakeClock())
    room_id = svc.running_room(wallets=wallets, total_rounds=3, max_players=8)

    start = threading.Barrier(len(wallets))
    outcomes = []

    def submit(wallet):
        start.wait()
        outcomes.append(svc.rounds.record_accepted_submission(room_id, wallet, 1))

    threads = [threading.Thread(target=submit, args=(w,)) for w in wallets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for o in outcomes if o.round_complete) == 1
    assert svc.registry.get(room_id).current_round == 2


def test_pipeline_rejects_wrong_answer_before_proving(services):
    room_id = services.running_room()
    with pytest.raises(IncorrectSolution):
        services.pipeline.submit_proof(room_id, A, 1, 'not a solution')
    assert services.proofs.generated == 0
    assert services.nonces.current(A) == 0
    assert services.rounds.get_round_status(room_id).submitted_count == 0


def test_pipeline_proof_generation_failure(clock):
    svc = Services(clock, proofs=RecordingProofs(fail_generate=True))
    room_id = svc.running_room()
    with pytest.raises(ProofGenerationFailure):
        svc.pipeline.submit_proof(room_id, A, 1, 'thronebreaker_complete')
    assert svc.registry.get(room_id).players[0].score == 0
    assert svc.nonces.current(A) == 0


def test_pipeline_proof_verification_failure(clock):
    svc = Services(clock, proofs=RecordingProofs(fail_verify=True))
    room_id = svc.running_room()
    with pytest.raises(ProofVerificationFailure):
        svc.pipeline.submit_proof(room_id, A, 1, 'thronebreaker_complete')
    assert svc.rounds.get_round_status(room_id).submitted_count == 0


def test_pipeline_attestation_is_signed(services):
    room_id = services.running_room()
    result = services.pipeline.submit_proof(room_id, A, '1', 'MEMORY:crowns')
    att = result.attestation
    assert att.round_id == 1
    assert att.solution_hash == solution_hash_for('MEMORY:crowns')
    assert att.nonce == 1
    assert services.signer.verify(1, A, att.solution_hash, 1, att.signature)
    assert not services.signer.verify(1, A, att.solution_hash, 2, att.signature)
    assert 'score' not in result.to_dict()


def test_leaderboard_breaks_ties_by_completion_time(clock, services):
    room_id = services.running_room(wallets=(A, B, 'GCCCCPLAYER'), total_rounds=2)
    # Round 1: everyone
    for w in ('GCCCCPLAYER', B, A):
        clock.advance(10)
        services.rounds.record_accepted_submission(room_id, w, 1)
    # Round 2: everyone ties on score, order follows who finished first
    clock.advance(10)
    services.rounds.record_accepted_submission(room_id, 'GCCCCPLAYER', 2)
    clock.advance(10)
    services.rounds.record_accepted_submission(room_id, A, 2)
    clock.advance(10)
    services.rounds.record_accepted_submission(room_id, B, 2)

    results = services.lifecycle.get_final_results(room_id)
    assert [e.wallet for e in results.leaderboard] == ['GCCCCPLAYER', A, B]
    assert [e.rank for e in results.leaderboard] == [1, 2, 3]
    assert results.winner.wallet == 'GCCCCPLAYER'
    assert results.leaderboard[0].accuracy == 100.0


def test_final_results_only_when_finished(services):
    room_id = services.running_room(total_rounds=1)
    with pytest.raises(InvalidState):
        services.lifecycle.get_final_results(room_id)
    services.rounds.record_accepted_submission(room_id, A, 1)
    services.rounds.record_accepted_submission(room_id, B, 1)
    room = services.registry.get(room_id)
    assert room.state == RoomState.FINISHED
    results = services.lifecycle.get_final_results(room_id)
    assert results.total_rounds == 1
    # Late submission after finish
    with pytest.raises(InvalidState):
        services.rounds.record_accepted_submission(room_id, A, 2)


def test_public_views_never_expose_progress(services):
    room_id = services.running_room(total_rounds=1)
    services.rounds.record_accepted_submission(room_id, A, 1, solution_hash_for('x'))
    state = services.registry.get_room_state(room_id)
    for p in state['players']:
        assert set(p) == {'wallet', 'displayName', 'isHost', 'isReady', 'joinedAt'}
    services.rounds.record_accepted_submission(room_id, B, 1)
    finished = services.registry.get_room_state(room_id)
    assert finished['state'] == 'FINISHED'
    assert 'hiddenLeaderboard' not in finished


def test_purge_expired_rooms(clock):
    svc = Services(clock)
    svc.registry.waiting_ttl_ms = 60_000
    old = svc.registry.create_room(A).room_id
    clock.advance(30_000)
    fresh = svc.registry.create_room(B).room_id
    clock.advance(40_000)
    assert svc.registry.purge_expired() == [old]
    assert [r['roomId'] for r in svc.registry.list_public_rooms()] == [fresh]


def test_digest_proof_rejects_tampering(services):
    h = solution_hash_for('LOGIC:gates')
    artifact = services.proofs.inner.generate('LOGIC:gates', h, A, 5)
    assert services.proofs.inner.verify(artifact)
    forged = ProofArtifact(proof=artifact.proof, public_inputs=f'{h}:{B}:5', backend=artifact.backend)
    assert not services.proofs.inner.verify(forged)


def test_attestation_message_layout():
    h = solution_hash_for('abc')
    msg = attestation_message(7, 'GW', h, 9)
    assert len(msg) == 32
    assert msg != attestation_message(7, 'GW', h, 10)
    with pytest.raises(ValueError):
        attestation_message(7, 'GW', '0x1234', 9)


def test_strict_trial_matching():
    from zkthrone.services.trials import TrialAnswerKey
    loose = TrialAnswerKey()
    strict = TrialAnswerKey(strict=True)
    assert loose.validate(1, 'CIPHER:x')
    assert not strict.validate(1, 'CIPHER:x')
    assert strict.validate(4, 'CIPHER:x')
    assert not loose.validate(1, '')


def test_parse_round_id_accepts_only_ascii_digits():
    from zkthrone.errors import ValidationError
    from zkthrone.services.submission import parse_round_id
    assert parse_round_id(' 3 ') == 3
    assert parse_round_id(7) == 7
    for bad in ('²', '١', '3.0', '-1', '0', True, 2 ** 32, [1]):
        with pytest.raises(ValidationError):
            parse_round_id(bad)


def test_failed_countdown_schedule_leaves_room_waiting(clock):
    def broken_start_task(*args):
        raise RuntimeError('no worker available')

    scheduler = CountdownScheduler(start_task=broken_start_task, sleep=lambda s: None)
    svc = Services(clock, scheduler=scheduler)
    room_id = svc.registry.create_room(A).room_id
    svc.registry.join_room(room_id, B)

    with pytest.raises(RuntimeError):
        svc.lifecycle.start_game(room_id, A)
    room = svc.registry.get(room_id)
    assert room.state == RoomState.WAITING
    assert room.countdown_started_at is None
    assert scheduler.pending() == set()

    # Once a worker is available the host can start again
    scheduler.start_task = lambda target, *args: None
    started = svc.lifecycle.start_game(room_id, A)
    assert started.countdown_ends_at == clock.now + 15000
    assert svc.registry.get(room_id).state == RoomState.COUNTDOWN


def test_bb_prove_uses_private_output_dir(tmp_path, monkeypatch):
    target = tmp_path / 'target'
    target.mkdir()
    for name in ('throne.json', 'throne.gz', 'vk'):
        (target / name).write_bytes(b'x')

    bb = BarretenbergProofSubsystem(str(tmp_path))
    out_dirs = []

    def fake_run(args):
        assert args[0] == 'prove'
        out = args[args.index('-o') + 1]
        out_dirs.append(out)
        with open(f'{out}/proof', 'wb') as fh:
            fh.write(out.encode())
        with open(f'{out}/public_inputs', 'w') as fh:
            fh.write('0x01')
        return subprocess.CompletedProcess(args, 0, b'', b'')

    monkeypatch.setattr(bb, '_run', fake_run)
    first = bb.generate('LOGIC:a', solution_hash_for('LOGIC:a'), A, 1)
    second = bb.generate('LOGIC:b', solution_hash_for('LOGIC:b'), B, 1)

    assert len(set(out_dirs)) == 2
    assert all(not d.startswith(str(target)) for d in out_dirs)
    assert first.proof != second.proof
    assert first.public_inputs == '0x01'
    # Scratch output is cleaned up once the artifact is read
    assert not any(os.path.exists(d) for d in out_dirs)
