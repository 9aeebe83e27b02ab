"""Data classes for the surgery lab domain model."""
from dataclasses import dataclass, field, asdict
from typing import Optional

METRIC_NAMES = (
    "technical_skill",
    "decision_making",
    "time_management",
    "tissue_handling",
    "safety_score",
)


@dataclass
class Option:
    text: str
    is_correct: bool = False
    severity: Optional[str] = None
    explanation: str = ""
    outcome: str = ""
    rationale: str = ""
    technique_score: Optional[int] = None
    safety_score: Optional[int] = None

    @property
    def is_critical(self) -> bool:
        return self.severity == "critical"


@dataclass
class DecisionPoint:
    question: str
    options: list[Option] = field(default_factory=list)


@dataclass
class Step:
    index: int
    title: str
    description: str = ""
    expected_time: int = 300
    technical_difficulty: str = "medium"
    criticality: str = "medium"
    decision_point: Optional[DecisionPoint] = None
    expert_tips: str = ""
    is_emergency: bool = False


@dataclass
class Procedure:
    id: str
    name: str
    steps: list[Step] = field(default_factory=list)
    category: str = "general"
    difficulty: str = "intermediate"
    species: str = ""
    sources: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Complication:
    type: str
    description: str
    intervention_required: bool
    recovery_time: int


@dataclass(frozen=True)
class Branch:
    branch_id: str
    next_step_index: int
    complications: tuple[Complication, ...] = ()
    performance_impact: dict = field(default_factory=dict)
    decision_point_index: Optional[int] = None
    option_index: Optional[int] = None

    @property
    def is_linear(self) -> bool:
        return self.option_index is None


@dataclass
class Node:
    step: Step
    branches: list[Branch] = field(default_factory=list)

    def branch_for(self, option_index: int) -> Optional[Branch]:
        for branch in self.branches:
            if branch.option_index == option_index:
                return branch
        return None


@dataclass
class DecisionTree:
    procedure: Procedure
    nodes: dict[int, Node] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class PerformanceMetrics:
    technical_skill: int = 0
    decision_making: int = 0
    time_management: int = 0
    tissue_handling: int = 0
    safety_score: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class Feedback:
    primary: str
    technical: str = ""
    clinical: str = ""
    educational: str = ""
    references: list[str] = field(default_factory=list)


@dataclass
class DecisionRecord:
    step_index: int
    option_index: int
    time_spent: float
    is_correct: bool
    complications: list[Complication] = field(default_factory=list)
    performance_impact: dict = field(default_factory=dict)
    deltas: dict = field(default_factory=dict)
    metrics: dict = field(default_factory=dict)


@dataclass
class Outcome:
    is_correct: bool
    next_step_index: int
    complications: list[Complication]
    feedback: Feedback
    performance_impact: dict
    deltas: dict
    metrics: PerformanceMetrics
    is_complete: bool = False
