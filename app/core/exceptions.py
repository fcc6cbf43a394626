from typing import List, Optional


class WorkflowError(Exception):
    """Базовая ошибка рабочего процесса редактирования"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": type(self).__name__}


class NotFoundError(WorkflowError):
    """Проект, вопрос или версия не найдены"""

    status_code = 404


class LockedError(WorkflowError):
    """Вопрос редактирует другой пользователь"""

    status_code = 423

    def __init__(self, held_by: str, remaining_seconds: int):
        minutes, seconds = divmod(remaining_seconds, 60)
        super().__init__(
            f"Question is being edited by {held_by} (unlocks in {minutes}:{seconds:02d})"
        )
        self.held_by = held_by
        self.remaining_seconds = remaining_seconds

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"held_by": self.held_by, "remaining_seconds": self.remaining_seconds})
        return data


class InvalidTransition(WorkflowError):
    """Переход между статусами не предусмотрен графом"""

    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change status from {current} to {target}")
        self.current = current
        self.target = target


class Forbidden(WorkflowError):
    """Недостаточно прав для действия"""

    status_code = 403


class ConfirmationRequired(WorkflowError):
    """Действие требует явного подтверждения"""

    status_code = 409

    def __init__(self, message: str, question_ids: Optional[List[str]] = None):
        super().__init__(message)
        self.question_ids = question_ids or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["question_ids"] = self.question_ids
        return data


class AssignmentError(WorkflowError):
    """Некорректный запрос на распределение вопросов"""

    status_code = 422


class PersistenceFailure(WorkflowError):
    """Не удалось записать документ в хранилище"""

    status_code = 503

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class RevisionConflict(PersistenceFailure):
    """Документ изменён другим клиентом после чтения"""

    status_code = 409

    def __init__(self, expected: int, actual: Optional[int] = None):
        super().__init__(f"Project revision {expected} is stale (current: {actual})")
        self.expected = expected
        self.actual = actual


class StaleDocumentConflict(WorkflowError):
    """Удалённое обновление пришло во время локального редактирования"""

    status_code = 409

    def __init__(self, question_id: str, remote_revision: int):
        super().__init__(
            f"Remote update (revision {remote_revision}) deferred while question {question_id} is being edited"
        )
        self.question_id = question_id
        self.remote_revision = remote_revision
