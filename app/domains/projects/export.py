import html
from typing import Dict, Any

from app.domains.projects.entities import Project, utcnow

EXPORT_FORMATS = ("txt", "md", "html")


def _answer(response) -> str:
    return response if response else "(no answer yet)"


def export_project(project: Project, format_type: str, include_versions: bool = False) -> Dict[str, Any]:
    """Экспорт проекта в текстовых форматах; блокировки и история не меняются"""
    if format_type not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported format: {format_type}")

    lines = []
    if format_type == "txt":
        lines.append(project.name)
        lines.append("=" * len(project.name))
        for section in project.sections:
            lines.append("")
            lines.append(section.name.upper())
            for index, question in enumerate(section.questions, start=1):
                lines.append(f"{index}. {question.text}")
                lines.append(_answer(question.response))
                if include_versions and question.versions:
                    for version in question.versions:
                        lines.append(f"   [{version.change_type.value} {version.edited_at:%Y-%m-%d %H:%M}] {version.content}")
        content = "\n".join(lines)

    elif format_type == "md":
        lines.append(f"# {project.name}")
        for section in project.sections:
            lines.append("")
            lines.append(f"## {section.name}")
            for question in section.questions:
                lines.append("")
                lines.append(f"### {question.text}")
                lines.append("")
                lines.append(_answer(question.response))
                if include_versions and question.versions:
                    lines.append("")
                    lines.append("<details><summary>Version history</summary>")
                    lines.append("")
                    for version in question.versions:
                        lines.append(f"- *{version.change_type.value}*, {version.edited_at:%Y-%m-%d %H:%M}: {version.content}")
                    lines.append("</details>")
        content = "\n".join(lines)

    else:
        title = html.escape(project.name)
        body = [f"<h1>{title}</h1>"]
        for section in project.sections:
            body.append(f"<h2>{html.escape(section.name)}</h2>")
            for question in section.questions:
                body.append(f"<h3>{html.escape(question.text)}</h3>")
                body.append(f"<p>{html.escape(_answer(question.response))}</p>")
                if include_versions and question.versions:
                    body.append("<ul>")
                    for version in question.versions:
                        body.append(f"<li>{version.change_type.value}: {html.escape(version.content)}</li>")
                    body.append("</ul>")
        content = (
            "<!DOCTYPE html>\n<html>\n<head>\n"
            f"<title>{title}</title>\n"
            "</head>\n<body>\n"
            + "\n".join(body)
            + "\n</body>\n</html>"
        )

    return {
        "project_id": project.id,
        "format": format_type,
        "filename": f"{project.name}.{format_type}",
        "content": content,
        "exported_at": utcnow(),
    }
