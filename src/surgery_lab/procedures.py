"""Load procedure definitions from bundled content or user files."""
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from surgery_lab.db import get_connection
from surgery_lab.errors import MalformedProcedure
from surgery_lab.models import DecisionPoint, Option, Procedure, Step
from surgery_lab.scoring import DEFAULT_EXPECTED_TIME
from surgery_lab.tree import build_decision_tree

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"


def _pick(data: dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _require_mapping(data, what: str) -> dict:
    if not isinstance(data, dict):
        raise MalformedProcedure(f"{what} must be a mapping, got {type(data).__name__}")
    return data


def _int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedProcedure(f"{field} must be an integer, got {value!r}") from None


def _optional_int(value, field: str) -> int | None:
    return None if value is None else _int(value, field)


def parse_option(data: dict) -> Option:
    _require_mapping(data, "Option")
    return Option(
        text=_pick(data, "text", default=""),
        is_correct=bool(_pick(data, "is_correct", "isCorrect", default=False)),
        severity=_pick(data, "severity"),
        explanation=_pick(data, "explanation", default=""),
        outcome=_pick(data, "outcome", default=""),
        rationale=_pick(data, "rationale", default=""),
        technique_score=_optional_int(_pick(data, "technique_score", "techniqueScore"), "technique_score"),
        safety_score=_optional_int(_pick(data, "safety_score", "safetyScore"), "safety_score"),
    )


def parse_decision_point(data: dict | None) -> DecisionPoint | None:
    if data is None:
        return None
    _require_mapping(data, "Decision point")
    options = data.get("options") or []
    if not isinstance(options, list):
        raise MalformedProcedure("Decision point options must be a list")
    return DecisionPoint(
        question=_pick(data, "question", "text", default=""),
        options=[parse_option(o) for o in options],
    )


def parse_step(index: int, data: dict) -> Step:
    _require_mapping(data, f"Step {index}")
    if "decision_point" in data:
        dp = parse_decision_point(data["decision_point"])
    else:
        # Only the first decision point of a step is scored
        points = _pick(data, "decisionPoints", "decision_points", default=[])
        if not isinstance(points, list):
            raise MalformedProcedure(f"Decision points of step {index} must be a list")
        dp = parse_decision_point(points[0]) if points else None
    return Step(
        index=index,
        title=_pick(data, "title", default=f"Step {index + 1}"),
        description=_pick(data, "description", default=""),
        expected_time=_int(
            _pick(data, "expected_time", "expectedTime", default=DEFAULT_EXPECTED_TIME),
            f"expected_time of step {index}",
        ),
        technical_difficulty=_pick(data, "technical_difficulty", "technicalDifficulty", default="medium"),
        criticality=_pick(data, "criticality", "criticality_level", "criticalityLevel", default="medium"),
        decision_point=dp,
        expert_tips=_pick(data, "expert_tips", "expertTips", default=""),
        is_emergency=bool(_pick(data, "is_emergency", "isEmergency", default=False)),
    )


def parse_procedure(data: dict) -> Procedure:
    """Build a Procedure from a mapping using either camelCase or snake_case keys."""
    if not isinstance(data, dict):
        raise MalformedProcedure("Procedure definition must be a mapping")
    if not data.get("id") or not data.get("name"):
        raise MalformedProcedure("Procedure definition needs an id and a name")
    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise MalformedProcedure(f"Steps of procedure {data['id']!r} must be a list")
    return Procedure(
        id=str(data["id"]),
        name=data["name"],
        steps=[parse_step(i, s) for i, s in enumerate(steps)],
        category=_pick(data, "category", default="general"),
        difficulty=_pick(data, "difficulty", default="intermediate"),
        species=_pick(data, "species", default=""),
        sources=list(_pick(data, "sources", default=[])),
    )


def procedure_to_dict(procedure: Procedure) -> dict:
    return asdict(procedure)


def read_procedure_file(file_path: str) -> list[Procedure]:
    """Read one procedure, or a ``{"procedures": [...]}`` bundle, from JSON or YAML.

    Every procedure is checked for a buildable decision tree, so a bad file
    fails here instead of when a trainee first opens it.
    """
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix not in (".json", ".yaml", ".yml"):
        raise MalformedProcedure(f"Unsupported procedure file type: {suffix or path.name}")
    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedProcedure(f"Invalid JSON in {path.name}: {e}") from e
    else:
        import yaml
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise MalformedProcedure(f"Invalid YAML in {path.name}: {e}") from e
    if isinstance(data, dict) and "procedures" in data:
        if not isinstance(data["procedures"], list):
            raise MalformedProcedure(f"'procedures' in {path.name} must be a list")
        procedures = [parse_procedure(p) for p in data["procedures"]]
    else:
        procedures = [parse_procedure(data)]
    for procedure in procedures:
        build_decision_tree(procedure)
    return procedures


def save_procedure(db_path: str, procedure: Procedure, source: str = "seeded") -> None:
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO procedures (id, name, category, difficulty, species, definition, source, imported_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET name=excluded.name, category=excluded.category,
            difficulty=excluded.difficulty, species=excluded.species,
            definition=excluded.definition, source=excluded.source, imported_at=excluded.imported_at""",
        (
            procedure.id, procedure.name, procedure.category, procedure.difficulty, procedure.species,
            json.dumps(procedure_to_dict(procedure)), source, datetime.now().isoformat(),
        ),
    )
    conn.commit()
    conn.close()


def is_seeded(db_path: str) -> bool:
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM procedures").fetchone()[0]
    conn.close()
    return count > 0


def seed_procedures(db_path: str) -> int:
    """Insert the bundled procedures. Returns how many were loaded."""
    if is_seeded(db_path):
        return 0
    procedures = read_procedure_file(str(CONTENT_DIR / "procedures.json"))
    for procedure in procedures:
        save_procedure(db_path, procedure)
    logger.info("Seeded %d procedures", len(procedures))
    return len(procedures)


def list_procedures(db_path: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT id, name, category, difficulty, species, source FROM procedures ORDER BY name"
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_procedure(db_path: str, procedure_id: str) -> Procedure | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT definition FROM procedures WHERE id = ?", (procedure_id,)).fetchone()
    conn.close()
    if row is None:
        return None
    return parse_procedure(json.loads(row["definition"]))


def import_procedure(db_path: str, file_path: str) -> list[str]:
    """Import procedures from a file. Returns the imported ids."""
    procedures = read_procedure_file(file_path)
    for procedure in procedures:
        save_procedure(db_path, procedure, source="imported")
    logger.info("Imported %d procedures from %s", len(procedures), Path(file_path).name)
    return [p.id for p in procedures]
