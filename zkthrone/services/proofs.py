"""Proof subsystems.

``generate`` turns an already validated solution into a proof artifact and
``verify`` checks an artifact. Two backends:

- DigestProofSubsystem: keyed commitment computed in process (development)
- BarretenbergProofSubsystem: shells out to the ``bb`` CLI against a
  compiled Noir circuit
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
import base64
import hashlib
import hmac
import logging
import os
import subprocess
import tempfile
import threading


class ProofGenerationError(Exception):
    pass


@dataclass(frozen=True)
class ProofArtifact:
    proof: str  # base64
    public_inputs: str
    backend: str


class DigestProofSubsystem:
    name = 'digest'

    def __init__(self, secret: bytes, logger: Optional[logging.Logger] = None):
        if not secret:
            raise ValueError('proof secret must not be empty')
        self.secret = secret
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _public_inputs(solution_hash: str, wallet: str, round_id: int) -> str:
        return f"{solution_hash}:{wallet}:{int(round_id)}"

    def _mac(self, public_inputs: str) -> bytes:
        return hmac.new(self.secret, public_inputs.encode('utf-8'), hashlib.sha256).digest()

    def generate(self, solution: str, solution_hash: str, wallet: str, round_id: int) -> ProofArtifact:
        expected = '0x' + hashlib.sha256(solution.encode('utf-8')).hexdigest()
        if not hmac.compare_digest(expected, solution_hash):
            raise ProofGenerationError('solution does not match its hash')
        public_inputs = self._public_inputs(solution_hash, wallet, round_id)
        proof = base64.b64encode(self._mac(public_inputs)).decode('ascii')
        return ProofArtifact(proof=proof, public_inputs=public_inputs, backend=self.name)

    def verify(self, artifact: ProofArtifact) -> bool:
        try:
            presented = base64.b64decode(artifact.proof, validate=True)
        except (ValueError, TypeError):
            return False
        return hmac.compare_digest(presented, self._mac(artifact.public_inputs))


class BarretenbergProofSubsystem:
    """Drive ``bb write_vk`` / ``bb prove`` / ``bb verify`` (UltraHonk)."""

    name = 'bb'

    def __init__(self, circuit_dir: str, bb_path: str = 'bb', circuit_name: str = 'throne',
                 timeout_sec: float = 120.0, logger: Optional[logging.Logger] = None):
        self.bb_path = bb_path
        self.timeout_sec = timeout_sec
        self.logger = logger or logging.getLogger(__name__)
        self.target_dir = Path(circuit_dir) / 'target'
        self.circuit_json = self.target_dir / f'{circuit_name}.json'
        self.witness = self.target_dir / f'{circuit_name}.gz'
        self.vk_path = self.target_dir / 'vk'
        # Held only while the one-time verification key is written
        self._vk_lock = threading.Lock()

    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        cmd = [self.bb_path, *args]
        self.logger.info(f"[bb] {' '.join(cmd)}")
        return subprocess.run(cmd, capture_output=True, timeout=self.timeout_sec, check=False)

    def _ensure_vk(self) -> None:
        if self.vk_path.exists():
            return
        with self._vk_lock:
            if self.vk_path.exists():
                return
            self.logger.info(f"[bb] vk missing, generating into {self.target_dir}")
            result = self._run(['write_vk', '-b', str(self.circuit_json), '-o', str(self.target_dir)])
            if result.returncode != 0:
                raise ProofGenerationError(f"bb write_vk failed: {result.stderr.decode(errors='replace').strip()}")

    def generate(self, solution: str, solution_hash: str, wallet: str, round_id: int) -> ProofArtifact:
        for path, hint in ((self.circuit_json, 'circuit json'), (self.witness, 'witness')):
            if not path.exists():
                raise ProofGenerationError(f'{hint} not found at {path}; run nargo compile/execute')
        with tempfile.TemporaryDirectory(prefix='zkthrone-prove-') as out_dir:
            try:
                self._ensure_vk()
                result = self._run([
                    'prove',
                    '-b', str(self.circuit_json),
                    '-w', str(self.witness),
                    '-k', str(self.vk_path),
                    '-o', out_dir,
                ])
            except (OSError, subprocess.TimeoutExpired) as exc:
                raise ProofGenerationError(f'bb prove could not run: {exc}') from exc
            if result.returncode != 0:
                raise ProofGenerationError(f"bb prove failed: {result.stderr.decode(errors='replace').strip()}")
            try:
                proof = Path(out_dir, 'proof').read_bytes()
                public_inputs = Path(out_dir, 'public_inputs').read_text()
            except OSError as exc:
                raise ProofGenerationError(f'bb prove left no output: {exc}') from exc
        return ProofArtifact(
            proof=base64.b64encode(proof).decode('ascii'),
            public_inputs=public_inputs,
            backend=self.name,
        )

    def verify(self, artifact: ProofArtifact) -> bool:
        with tempfile.TemporaryDirectory(prefix='zkthrone-verify-') as tmp:
            proof_path = os.path.join(tmp, 'proof')
            inputs_path = os.path.join(tmp, 'public_inputs')
            with open(proof_path, 'wb') as fh:
                fh.write(base64.b64decode(artifact.proof))
            with open(inputs_path, 'w') as fh:
                fh.write(artifact.public_inputs)
            try:
                result = self._run(['verify', '-k', str(self.vk_path), '-p', proof_path, '-i', inputs_path])
            except (OSError, subprocess.TimeoutExpired) as exc:
                self.logger.warning(f"[bb] verify could not run: {exc}")
                return False
        if result.returncode != 0:
            self.logger.warning(f"[bb] verify rejected proof: {result.stderr.decode(errors='replace').strip()}")
            return False
        return True
