"""Feedback text for processed decisions."""
from surgery_lab.models import Feedback, Option, Procedure, Step

MAX_REFERENCES = 2


def correct_approach(step: Step) -> str:
    if step.decision_point:
        for option in step.decision_point.options:
            if option.is_correct:
                return option.text
    return "consult the course references"


def educational_tip(option: Option, step: Step) -> str:
    if option.is_correct:
        reason = option.rationale or "it follows standard surgical practice"
        return f"Teaching point: {option.text} is a good choice because {reason}."
    tip = step.expert_tips or "further study of the surgical technique is recommended"
    return f"Learning point: when facing this situation, {tip}."


def generate_feedback(option: Option, step: Step, procedure: Procedure) -> Feedback:
    if option.is_correct:
        primary = option.explanation or "Correct decision!"
        technical = f"This choice follows standard {procedure.category} surgical protocol."
    else:
        primary = option.explanation or "Needs review"
        technical = f"This decision can lead to complications. Correct approach: {correct_approach(step)}"
    clinical = f"Clinical implications: {option.outcome}" if option.outcome else ""
    return Feedback(
        primary=primary,
        technical=technical,
        clinical=clinical,
        educational=educational_tip(option, step),
        references=list(procedure.sources[:MAX_REFERENCES]),
    )
