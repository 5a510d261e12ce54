# Guided walkthrough - a plain step counter, independent of the exchange engine
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

WALKTHROUGH_STEPS: List[Dict] = [
    {"step": 1, "title": "Opted Out", "description": "Try to request history (you'll be blocked)"},
    {"step": 2, "title": "Opt In", "description": "Change your sharing mode to Basic or Full"},
    {"step": 3, "title": "No Credits", "description": "Try again (still blocked - no credits)"},
    {"step": 4, "title": "Contribute", "description": "Document an encounter to earn credits"},
    {"step": 5, "title": "Access Granted", "description": "Request history successfully"},
    {"step": 6, "title": "Complete", "description": "See masked origin & no private notes"},
]
LAST_STEP = len(WALKTHROUGH_STEPS)


@dataclass
class Walkthrough:
    """Step 0 means inactive; steps run 1..6 and stop at the last one."""
    step: int = 0
    active: bool = False

    def start(self) -> None:
        self.active = True
        self.step = 1

    def next(self) -> None:
        if self.active and self.step < LAST_STEP:
            self.step += 1

    def reset(self) -> None:
        self.active = False
        self.step = 0

    def current(self) -> Optional[Dict]:
        if not self.active:
            return None
        return WALKTHROUGH_STEPS[self.step - 1]

    def to_dict(self) -> Dict:
        return {
            "active": self.active,
            "step": self.step,
            "totalSteps": LAST_STEP,
            "current": self.current(),
        }
