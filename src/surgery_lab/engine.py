"""Decision processing for a single trainee session."""
import logging
from dataclasses import replace

from surgery_lab.errors import InvalidContext
from surgery_lab.feedback import generate_feedback
from surgery_lab.models import DecisionRecord, Outcome, PerformanceMetrics, Procedure
from surgery_lab.scoring import apply_deltas, grade_for, overall_score, score_decision
from surgery_lab.tree import build_decision_tree

logger = logging.getLogger(__name__)


class DecisionEngine:
    """Replays a trainee's choices over one procedure and keeps the running score.

    One engine per session. The tree is built once at construction; metrics,
    complications and the decision path only ever grow.
    """

    def __init__(self, procedure: Procedure, strict_timing: bool = False):
        self.procedure = procedure
        self.strict_timing = strict_timing
        self.tree = build_decision_tree(procedure)
        self._metrics = PerformanceMetrics()
        self._complications = []
        self._path = []

    @property
    def metrics(self) -> PerformanceMetrics:
        return replace(self._metrics)

    @property
    def complications(self) -> tuple:
        return tuple(self._complications)

    @property
    def decision_path(self) -> tuple:
        return tuple(self._path)

    @property
    def total_decision_points(self) -> int:
        return sum(1 for node in self.tree.nodes.values() if node.step.decision_point)

    @property
    def correct_decisions(self) -> int:
        return sum(1 for record in self._path if record.is_correct)

    def _invalid(self, message: str, step_index: int, option_index: int | None = None):
        logger.warning("Rejected decision for %s: %s", self.procedure.id, message)
        return InvalidContext(message, step_index=step_index, option_index=option_index)

    def process_decision(self, step_index: int, option_index: int, time_spent: float) -> Outcome:
        """Score one decision and record it.

        Raises InvalidContext, leaving the session untouched, when the step has
        no decision point or either index is out of range.
        """
        node = self.tree.nodes.get(step_index)
        if node is None:
            raise self._invalid(f"No step {step_index}", step_index)
        dp = node.step.decision_point
        if dp is None:
            raise self._invalid(f"Step {step_index} has no decision point", step_index)
        if not 0 <= option_index < len(dp.options):
            raise self._invalid(
                f"Option {option_index} out of range for step {step_index}", step_index, option_index
            )
        branch = node.branch_for(option_index)
        if branch is None:
            raise self._invalid(f"No branch for option {option_index}", step_index, option_index)

        option = dp.options[option_index]
        deltas = score_decision(option, time_spent, node.step.expected_time, self.strict_timing)
        self._metrics = apply_deltas(replace(self._metrics), deltas)
        complications = list(branch.complications)
        self._complications.extend(complications)
        snapshot = self.metrics
        self._path.append(DecisionRecord(
            step_index=step_index,
            option_index=option_index,
            time_spent=time_spent,
            is_correct=option.is_correct,
            complications=complications,
            performance_impact=dict(branch.performance_impact),
            deltas=deltas,
            metrics=snapshot.as_dict(),
        ))
        logger.debug(
            "Step %d option %d (%s) -> next %d",
            step_index, option_index, "correct" if option.is_correct else "incorrect",
            branch.next_step_index,
        )
        return Outcome(
            is_correct=option.is_correct,
            next_step_index=branch.next_step_index,
            complications=complications,
            feedback=generate_feedback(option, node.step, self.procedure),
            performance_impact=dict(branch.performance_impact),
            deltas=deltas,
            metrics=snapshot,
            is_complete=branch.next_step_index >= len(self.procedure.steps),
        )

    def advance_linear(self, step_index: int) -> int:
        """Follow the linear branch of a step that has no decision to make."""
        node = self.tree.nodes.get(step_index)
        if node is None or node.step.decision_point is not None:
            raise self._invalid(f"Step {step_index} is not a linear step", step_index)
        return node.branches[0].next_step_index

    def overall_performance(self) -> dict:
        score = overall_score(self._metrics)
        return {
            **self._metrics.as_dict(),
            "overall_score": score,
            "grade": grade_for(score),
            "complications": list(self._complications),
            "decision_path": list(self._path),
        }
