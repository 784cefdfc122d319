"""Trial catalogue and answer key.

Each trial accepts its completion token or any solution carrying its
prefix. By default a solution is accepted if it satisfies any trial, since
clients pick the trial order; strict mode only accepts the trial whose id
matches the round.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional
import logging


@dataclass(frozen=True)
class Trial:
    id: int
    name: str
    description: str
    completion_token: str
    prefix: str

    def accepts(self, solution: str) -> bool:
        return solution == self.completion_token or solution.startswith(self.prefix)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'description': self.description}


TRIALS: Dict[int, Trial] = {
    t.id: t
    for t in [
        Trial(1, 'Thronebreaker Protocol', 'Shoot the wrong answers, avoid the correct ones',
              'thronebreaker_complete', 'THRONEBREAKER:'),
        Trial(2, 'Color Sigil Memory', 'Remember and repeat the color sequence',
              'colorsigil_complete', 'COLORSIGIL:'),
        Trial(3, 'Pattern Oracle', 'Complete the pattern sequence',
              'patteroracle_complete', 'PATTERN:'),
        Trial(4, 'Cipher Grid', 'Solve the cipher puzzle',
              'ciphergrid_complete', 'CIPHER:'),
        Trial(5, 'Logic Labyrinth', 'Navigate the logic gates',
              'logiclabyrinth_complete', 'LOGIC:'),
        Trial(6, 'Memory of Crowns', 'Remember the royal symbols',
              'memoryofcrowns_complete', 'MEMORY:'),
        Trial(7, 'Hidden Sigil', 'Discover the hidden sigil',
              'hiddensigil_complete', 'HIDDEN:'),
    ]
}


class TrialAnswerKey:
    def __init__(self, trials: Optional[Dict[int, Trial]] = None, strict: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.trials = trials if trials is not None else TRIALS
        self.strict = strict
        self.logger = logger or logging.getLogger(__name__)

    def validate(self, round_id: int, solution: str) -> bool:
        if not isinstance(solution, str) or not solution:
            return False
        if self.strict:
            trial = self.trials.get(round_id)
            ok = bool(trial and trial.accepts(solution))
        else:
            trial = next((t for t in self.trials.values() if t.accepts(solution)), None)
            ok = trial is not None
        if ok:
            self.logger.info(f"[trial-ok] round={round_id} trial={trial.name!r}")
        else:
            self.logger.info(f"[trial-wrong] round={round_id} solution={solution[:50]!r}")
        return ok

    def trial_info(self, trial_id: int) -> Optional[dict]:
        trial = self.trials.get(trial_id)
        return trial.to_dict() if trial else None

    def all_trials(self) -> List[dict]:
        return [self.trials[k].to_dict() for k in sorted(self.trials)]
