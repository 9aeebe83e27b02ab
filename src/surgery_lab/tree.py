"""Decision tree construction from procedure definitions."""
import logging

from surgery_lab.errors import MalformedProcedure
from surgery_lab.models import Branch, Complication, DecisionTree, Node, Option, Procedure, Step

logger = logging.getLogger(__name__)

EMERGENCY_MARKERS = ("emergency", "complication")

CORRECT_IMPACT = {"technical_skill": 5, "decision_making": 10, "safety_score": 5}
LINEAR_IMPACT = {"technical_skill": 2}

MAJOR_BLEEDING = Complication(
    type="major_bleeding",
    description="Severe haemorrhage caused by an incorrect decision",
    intervention_required=True,
    recovery_time=600,
)
TISSUE_DAMAGE = Complication(
    type="tissue_damage",
    description="Repairable tissue damage",
    intervention_required=False,
    recovery_time=180,
)


def find_emergency_step(procedure: Procedure, current_index: int) -> int:
    """Index of the step that handles a critical error.

    An explicit ``is_emergency`` flag wins; otherwise the first title that
    mentions an emergency or complication. With neither, the trainee stays put.
    """
    for i, step in enumerate(procedure.steps):
        if step.is_emergency:
            return i
    for i, step in enumerate(procedure.steps):
        title = (step.title or "").lower()
        if any(marker in title for marker in EMERGENCY_MARKERS):
            return i
    return current_index


def complications_for(option: Option) -> tuple[Complication, ...]:
    if option.is_correct:
        return ()
    if option.is_critical:
        return (MAJOR_BLEEDING,)
    return (TISSUE_DAMAGE,)


def _incorrect_impact(option: Option) -> dict:
    return {
        "technical_skill": -10,
        "decision_making": -15,
        "safety_score": -30 if option.is_critical else -10,
    }


def _build_node(procedure: Procedure, index: int, step: Step) -> Node:
    node_id = f"step_{index}"
    node = Node(step=step)
    dp = step.decision_point
    if dp is None:
        node.branches.append(Branch(
            branch_id=f"{node_id}_linear",
            next_step_index=index + 1,
            performance_impact=dict(LINEAR_IMPACT),
        ))
        return node

    if not dp.options:
        raise MalformedProcedure(
            f"Step {index} ({step.title!r}) of procedure {procedure.id!r} has a decision point with no options"
        )

    for opt_index, option in enumerate(dp.options):
        if option.is_correct:
            next_index = index + 1
            impact = dict(CORRECT_IMPACT)
        else:
            next_index = find_emergency_step(procedure, index) if option.is_critical else index + 1
            impact = _incorrect_impact(option)
        node.branches.append(Branch(
            branch_id=f"{node_id}_0_{opt_index}",
            next_step_index=next_index,
            complications=complications_for(option),
            performance_impact=impact,
            decision_point_index=0,
            option_index=opt_index,
        ))
    return node


def build_decision_tree(procedure: Procedure) -> DecisionTree:
    """Build the full branch graph for a procedure. Never mutated afterwards."""
    tree = DecisionTree(procedure=procedure)
    for index, step in enumerate(procedure.steps):
        tree.nodes[index] = _build_node(procedure, index, step)
    logger.debug("Built decision tree for %s with %d nodes", procedure.id, len(tree.nodes))
    return tree
