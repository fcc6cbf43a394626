from app.domains.projects.entities import (
    ChangeType, EditorRef, Project, ProvenanceKind, Question, ReviewState,
    Section, Stats, Version, Visibility
)
from app.domains.projects.generation import AnswerGenerator, GeneratedAnswer

__all__ = [
    "ChangeType", "EditorRef", "Project", "ProvenanceKind", "Question", "ReviewState",
    "Section", "Stats", "Version", "Visibility",
    "AnswerGenerator", "GeneratedAnswer"
]
