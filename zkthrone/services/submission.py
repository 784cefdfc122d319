"""Submission pipeline.

answer key -> hash -> proof generate -> proof verify -> score -> nonce -> sign

Every step is a hard gate. Nothing is committed to the room until the proof
has verified, and the proof and signing work runs with no room lock held.
"""

from dataclasses import dataclass
from typing import Optional
import hashlib
import logging

from zkthrone.errors import (
    IncorrectSolution,
    ProofGenerationFailure,
    ProofVerificationFailure,
    ValidationError,
)
from zkthrone.services.rounds import RoundCoordinator

MAX_ROUND_ID = 2 ** 32 - 1


def solution_hash_for(solution: str) -> str:
    return '0x' + hashlib.sha256(solution.encode('utf-8')).hexdigest()


def parse_round_id(value) -> int:
    if isinstance(value, bool):
        raise ValidationError('roundId must be a positive integer')
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise ValidationError('roundId must be a positive integer')
        value = int(value)
    if not isinstance(value, int) or not 0 < value <= MAX_ROUND_ID:
        raise ValidationError('roundId must be a positive integer')
    return value


@dataclass(frozen=True)
class SolutionSubmission:
    round_id: int
    wallet: str
    solution: str
    solution_hash: str


@dataclass(frozen=True)
class Attestation:
    round_id: int
    wallet: str
    solution_hash: str
    nonce: int
    signature: str

    def to_dict(self):
        return {
            'signature': self.signature,
            'solutionHash': self.solution_hash,
            'nonce': self.nonce,
            'roundId': self.round_id,
            'player': self.wallet,
        }


@dataclass(frozen=True)
class SubmissionResult:
    round_complete: bool
    already_submitted: bool
    attestation: Attestation

    def to_dict(self):
        # No score here, ever
        return {
            'success': True,
            'roundComplete': self.round_complete,
            'alreadySubmitted': self.already_submitted,
            'attestation': self.attestation.to_dict(),
        }


class SubmissionPipeline:
    def __init__(self, rounds: Optional[RoundCoordinator], answer_key, proofs, nonces, signer,
                 logger: Optional[logging.Logger] = None):
        self.rounds = rounds
        self.answer_key = answer_key
        self.proofs = proofs
        self.nonces = nonces
        self.signer = signer
        self.logger = logger or logging.getLogger(__name__)

    def _require(self, player_wallet, round_id, solution) -> int:
        if not player_wallet or not solution or round_id is None or round_id == '':
            raise ValidationError('Missing playerWallet, solution, or roundId')
        if not isinstance(solution, str) or not isinstance(player_wallet, str):
            raise ValidationError('playerWallet and solution must be strings')
        return parse_round_id(round_id)

    def _validate(self, round_id: int, wallet: str, solution: str) -> SolutionSubmission:
        if not self.answer_key.validate(round_id, solution):
            self.logger.info(f"[submit-wrong] player={wallet} round={round_id}")
            raise IncorrectSolution(f'Incorrect solution for round {round_id}')
        return SolutionSubmission(
            round_id=round_id,
            wallet=wallet,
            solution=solution,
            solution_hash=solution_hash_for(solution),
        )

    def _prove(self, submission: SolutionSubmission) -> None:
        try:
            artifact = self.proofs.generate(
                submission.solution, submission.solution_hash, submission.wallet, submission.round_id
            )
        except Exception as exc:
            self.logger.warning(f"[proof-fail] player={submission.wallet} round={submission.round_id} error={exc}")
            raise ProofGenerationFailure(f'Proof generation failed: {exc}') from exc

        try:
            verified = self.proofs.verify(artifact)
        except Exception as exc:
            self.logger.warning(f"[proof-fail] player={submission.wallet} verify error={exc}")
            raise ProofVerificationFailure('Proof verification failed') from exc
        if not verified:
            self.logger.warning(f"[proof-fail] player={submission.wallet} round={submission.round_id} rejected")
            raise ProofVerificationFailure('Proof verification failed')

    def _attest(self, submission: SolutionSubmission) -> Attestation:
        nonce = self.nonces.next(submission.wallet)
        signature = self.signer.sign(submission.round_id, submission.wallet, submission.solution_hash, nonce)
        return Attestation(
            round_id=submission.round_id,
            wallet=submission.wallet,
            solution_hash=submission.solution_hash,
            nonce=nonce,
            signature=signature,
        )

    def submit_proof(self, room_id: str, player_wallet: str, round_id, solution: str) -> SubmissionResult:
        if not room_id:
            raise ValidationError('roomId required')
        round_number = self._require(player_wallet, round_id, solution)
        self.logger.info(f"[submit-start] room={room_id} player={player_wallet} round={round_number}")
        # Cheap lock-protected check so doomed submissions skip proof work;
        # record_accepted_submission repeats it authoritatively.
        self.rounds.check_accepting(room_id, player_wallet, round_number)

        submission = self._validate(round_number, player_wallet, solution)
        self._prove(submission)
        outcome = self.rounds.record_accepted_submission(
            room_id, player_wallet, round_number, submission.solution_hash
        )
        attestation = self._attest(submission)
        self.logger.info(
            f"[submit-done] room={room_id} player={player_wallet} round={round_number} "
            f"round_complete={outcome.round_complete} nonce={attestation.nonce}"
        )
        return SubmissionResult(
            round_complete=outcome.round_complete,
            already_submitted=outcome.already_submitted,
            attestation=attestation,
        )

    def submit_solo(self, player_wallet: str, round_id, solution: str) -> Attestation:
        """Room-less flow: validate, prove and attest a single trial."""
        round_number = self._require(player_wallet, round_id, solution)
        submission = self._validate(round_number, player_wallet, solution)
        self._prove(submission)
        attestation = self._attest(submission)
        self.logger.info(f"[solo-done] player={player_wallet} round={round_number} nonce={attestation.nonce}")
        return attestation
