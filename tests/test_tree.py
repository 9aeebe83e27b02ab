import pytest

from surgery_lab.errors import MalformedProcedure
from surgery_lab.models import DecisionPoint, Option, Procedure, Step
from surgery_lab.tree import build_decision_tree, find_emergency_step
from conftest import make_procedure


def test_correct_branch_advances(procedure):
    tree = build_decision_tree(procedure)
    branch = tree.nodes[0].branch_for(0)
    assert branch.next_step_index == 1
    assert branch.complications == ()
    assert branch.performance_impact == {"technical_skill": 5, "decision_making": 10, "safety_score": 5}


def test_critical_branch_without_emergency_step_stays(procedure):
    tree = build_decision_tree(procedure)
    branch = tree.nodes[0].branch_for(1)
    assert branch.next_step_index == 0
    assert len(branch.complications) == 1
    comp = branch.complications[0]
    assert comp.type == "major_bleeding"
    assert comp.intervention_required is True
    assert comp.recovery_time == 600
    assert branch.performance_impact == {"technical_skill": -10, "decision_making": -15, "safety_score": -30}


def test_critical_branch_redirects_to_emergency(emergency_procedure):
    tree = build_decision_tree(emergency_procedure)
    assert tree.nodes[0].branch_for(1).next_step_index == 2


def test_moderate_branch_generates_tissue_damage(procedure):
    tree = build_decision_tree(procedure)
    branch = tree.nodes[0].branch_for(2)
    assert branch.next_step_index == 1
    assert branch.performance_impact["safety_score"] == -10
    comp = branch.complications[0]
    assert comp.type == "tissue_damage"
    assert comp.intervention_required is False
    assert comp.recovery_time == 180


def test_incorrect_without_severity_is_tissue_damage():
    proc = Procedure(id="p", name="P", steps=[
        Step(index=0, title="Choose", decision_point=DecisionPoint("Q", [Option("ok", is_correct=True), Option("bad")])),
    ])
    tree = build_decision_tree(proc)
    assert tree.nodes[0].branch_for(1).complications[0].type == "tissue_damage"


def test_linear_step_has_single_branch(procedure):
    tree = build_decision_tree(procedure)
    node = tree.nodes[1]
    assert len(node.branches) == 1
    branch = node.branches[0]
    assert branch.is_linear
    assert branch.branch_id == "step_1_linear"
    assert branch.next_step_index == 2
    assert branch.performance_impact == {"technical_skill": 2}
    assert branch.complications == ()


def test_one_branch_per_option(procedure):
    tree = build_decision_tree(procedure)
    assert [b.option_index for b in tree.nodes[0].branches] == [0, 1, 2]
    assert all(b.decision_point_index == 0 for b in tree.nodes[0].branches)


def test_build_is_deterministic(emergency_procedure):
    assert build_decision_tree(emergency_procedure) == build_decision_tree(emergency_procedure)


def test_multiple_correct_options_allowed():
    proc = Procedure(id="p", name="P", steps=[
        Step(index=0, title="Choose", decision_point=DecisionPoint("Q", [
            Option("a", is_correct=True), Option("b", is_correct=True),
        ])),
    ])
    tree = build_decision_tree(proc)
    assert all(b.next_step_index == 1 for b in tree.nodes[0].branches)


def test_decision_point_without_options_is_malformed():
    proc = Procedure(id="p", name="P", steps=[
        Step(index=0, title="Empty", decision_point=DecisionPoint("Q", [])),
    ])
    with pytest.raises(MalformedProcedure):
        build_decision_tree(proc)


def test_empty_procedure_builds_empty_tree():
    assert len(build_decision_tree(Procedure(id="p", name="P"))) == 0


def test_emergency_flag_wins_over_title():
    proc = make_procedure(emergency_title="Emergency Intervention")
    proc.steps.append(Step(index=3, title="Re-exploration", is_emergency=True))
    assert find_emergency_step(proc, 0) == 3


def test_emergency_title_match_is_case_insensitive():
    proc = make_procedure(emergency_title="Managing a COMPLICATION")
    assert find_emergency_step(proc, 0) == 2


def test_emergency_step_falls_back_to_current(procedure):
    assert find_emergency_step(procedure, 1) == 1
