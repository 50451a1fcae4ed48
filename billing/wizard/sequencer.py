"""
Step sequencer for the claim wizard.

Linear 1..5, no branching, no skip-ahead. A blocked ``next_step()`` raises a
validation flag that reads as cleared after VALIDATION_MESSAGE_SECONDS or on
the next successful advance.
"""

import logging
import time
from datetime import date
from dataclasses import dataclass
from typing import Callable, Optional

from .draft import DraftAggregator
from .types import ClaimDraft

logger = logging.getLogger(__name__)

VALIDATION_MESSAGE_SECONDS = 3.0


@dataclass(frozen=True)
class Step:
    id: int
    title: str
    description: str


STEPS = (
    Step(1, 'Patient', 'Select patient and basic info'),
    Step(2, 'Services', 'Add procedures and services'),
    Step(3, 'Diagnosis', 'Add diagnosis codes'),
    Step(4, 'Insurance', 'Insurance and billing info'),
    Step(5, 'Review', 'Review and submit'),
)


def is_step_complete(draft: ClaimDraft, step_id: int) -> bool:
    if step_id == 1:
        return draft.patient is not None and draft.patient != ''
    if step_id == 2:
        return len(draft.procedures) > 0
    if step_id == 3:
        return len(draft.diagnoses) > 0 and any(d.primary for d in draft.diagnoses)
    if step_id == 4:
        return draft.insurance.primary is not None and draft.insurance.primary != ''
    if step_id == 5:
        return True
    return False


def first_incomplete_step(draft: ClaimDraft) -> Optional[Step]:
    return next((step for step in STEPS if not is_step_complete(draft, step.id)), None)


class ClaimWizard:
    """
    One open wizard dialog: the draft, its aggregator and the current step.

    ``clock`` is injectable so the validation-flag timeout can be tested
    without sleeping.
    """

    def __init__(self, draft: Optional[ClaimDraft] = None, clock: Callable[[], float] = time.monotonic):
        self.aggregator = DraftAggregator(draft)
        self.current_step = 1
        self.is_open = True
        self._clock = clock
        self._validation_error_at: Optional[float] = None

    @classmethod
    def for_edit(cls, draft: ClaimDraft, **kwargs) -> 'ClaimWizard':
        """Open pre-populated with an existing claim's draft."""
        return cls(draft=draft, **kwargs)

    @property
    def draft(self) -> ClaimDraft:
        return self.aggregator.draft

    @property
    def step(self) -> Step:
        return STEPS[self.current_step - 1]

    @property
    def progress(self) -> float:
        return (self.current_step - 1) / (len(STEPS) - 1) * 100

    @property
    def show_validation_error(self) -> bool:
        if self._validation_error_at is None:
            return False
        return self._clock() - self._validation_error_at < VALIDATION_MESSAGE_SECONDS

    def is_step_complete(self, step_id: int) -> bool:
        return is_step_complete(self.draft, step_id)

    def update(self, partial) -> ClaimDraft:
        return self.aggregator.update(partial)

    def next_step(self) -> bool:
        """Advance one step if the current one is complete. Returns whether it moved."""
        if not self.is_step_complete(self.current_step):
            logger.debug("[Wizard] step %d incomplete, staying put", self.current_step)
            self._validation_error_at = self._clock()
            return False
        if self.current_step >= len(STEPS):
            return False
        self.current_step += 1
        self._validation_error_at = None
        if self.current_step == 2 and not self.draft.service_date:
            self.aggregator.set_service_date(date.today().isoformat())
        return True

    def prev_step(self) -> bool:
        if self.current_step <= 1:
            return False
        self.current_step -= 1
        return True

    def submit(self, on_submit: Callable[[ClaimDraft], object]):
        """
        Hand the whole draft to ``on_submit`` and close. Persistence and its
        errors belong to the caller; nothing is retried or rolled back here.
        """
        result = on_submit(self.draft)
        self.close()
        return result

    def close(self) -> None:
        self.is_open = False
