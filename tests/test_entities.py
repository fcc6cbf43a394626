"""Tests for project entity identity."""

from app.domains.projects.entities import Project


def test_project_identity_follows_id(project_factory):
    project = project_factory([1])
    copy = Project.from_dict(project.to_dict())
    copy.revision = 7

    assert copy == project
    assert hash(copy) == hash(project)
    assert len({project, copy, project_factory([1])}) == 2
    assert {project: "cached"}[copy] == "cached"
