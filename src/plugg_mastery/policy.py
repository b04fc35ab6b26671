"""Subject/skill -> scheduling policy table.

Fact-recall subjects (vocabulary, biology terms) are reviewed on a spaced
repetition schedule; procedural subjects use plain mastery tracking. The table
is data, so adding a subject means editing ``policies.yaml``:

    default: mastery
    subjects:
      engelska: spaced_repetition
    skills:
      - subject: matematik
        skill: multiplication-tables
        policy: spaced_repetition
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import PolicyConfigError
from .models import SchedulingPolicy, ensure_policy

PACKAGE_ROOT = Path(__file__).resolve().parent
POLICY_FILE = PACKAGE_ROOT / "policies.yaml"

DEFAULT_SUBJECT_POLICIES: dict[str, SchedulingPolicy] = {
    "engelska": "spaced_repetition",
    "english": "spaced_repetition",
    "biologi": "spaced_repetition",
    "biology": "spaced_repetition",
}


def _key(value: str) -> str:
    return value.strip().lower()


def _policy(value: Any) -> SchedulingPolicy:
    try:
        return ensure_policy(str(value))
    except ValueError as exc:
        raise PolicyConfigError(str(exc)) from exc


@dataclass(frozen=True, slots=True)
class PolicyTable:
    subjects: Mapping[str, SchedulingPolicy] = field(default_factory=dict)
    skills: Mapping[tuple[str, str], SchedulingPolicy] = field(default_factory=dict)
    default: SchedulingPolicy = "mastery"

    def policy_for(self, skill_id: str, subject_id: str) -> SchedulingPolicy:
        subject = _key(subject_id)
        override = self.skills.get((subject, _key(skill_id)))
        if override is not None:
            return override
        return self.subjects.get(subject, self.default)

    def should_use_spaced_repetition(self, skill_id: str, subject_id: str) -> bool:
        return self.policy_for(skill_id, subject_id) == "spaced_repetition"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PolicyTable":
        if not isinstance(raw, Mapping):
            raise PolicyConfigError("Policy table must be a mapping")
        default = _policy(raw.get("default", "mastery"))
        subjects_raw = raw.get("subjects") or {}
        if not isinstance(subjects_raw, Mapping):
            raise PolicyConfigError("'subjects' must be a mapping of subject -> policy")
        subjects = {_key(str(name)): _policy(policy) for name, policy in subjects_raw.items()}

        skills: dict[tuple[str, str], SchedulingPolicy] = {}
        for entry in raw.get("skills") or []:
            if not isinstance(entry, Mapping) or not {"subject", "skill", "policy"} <= set(entry):
                raise PolicyConfigError(
                    f"Skill override needs 'subject', 'skill' and 'policy': {entry!r}"
                )
            skills[(_key(str(entry["subject"])), _key(str(entry["skill"])))] = _policy(entry["policy"])
        return cls(subjects=subjects, skills=skills, default=default)


def default_policy_table() -> PolicyTable:
    return PolicyTable(subjects=dict(DEFAULT_SUBJECT_POLICIES))


def load_policy_table(path: Path | None = None) -> PolicyTable:
    """Parse a YAML policy file; the bundled ``policies.yaml`` when no path is given."""
    file_path = path or POLICY_FILE
    if path is None and not file_path.exists():
        return default_policy_table()
    try:
        with open(file_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise PolicyConfigError(f"Invalid policy file {file_path}: {exc}") from exc
    if raw is None:
        return default_policy_table()
    return PolicyTable.from_mapping(raw)


__all__ = [
    "DEFAULT_SUBJECT_POLICIES",
    "POLICY_FILE",
    "PolicyTable",
    "default_policy_table",
    "load_policy_table",
]
