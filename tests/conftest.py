import pytest

from surgery_lab.models import DecisionPoint, Option, Procedure, Step


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_lab.db")
    return db_path


def make_procedure(emergency_title=None, sources=None):
    """Two decision steps plus an optional emergency step at the end."""
    steps = [
        Step(
            index=0, title="Ligate the ovarian pedicle", expected_time=100,
            expert_tips="double ligate large pedicles",
            decision_point=DecisionPoint(
                question="Which ligature?",
                options=[
                    Option(text="Double ligature", is_correct=True, rationale="it is secure",
                           explanation="Secure haemostasis."),
                    Option(text="Single loose tie", is_correct=False, severity="critical",
                           outcome="Haemorrhage"),
                    Option(text="Cautery only", is_correct=False, severity="moderate"),
                ],
            ),
        ),
        Step(index=1, title="Close the abdomen", expected_time=100),
    ]
    if emergency_title:
        steps.append(Step(
            index=2, title=emergency_title, expected_time=200,
            decision_point=DecisionPoint(
                question="Bleeding pedicle?",
                options=[Option(text="Re-ligate", is_correct=True), Option(text="Close", is_correct=False)],
            ),
        ))
    return Procedure(
        id="spay", name="Spay", steps=steps, category="soft tissue",
        sources=sources if sources is not None else ["Fossum", "Tobias", "Howe"],
    )


@pytest.fixture
def procedure():
    return make_procedure()


@pytest.fixture
def emergency_procedure():
    return make_procedure(emergency_title="Emergency Intervention")
