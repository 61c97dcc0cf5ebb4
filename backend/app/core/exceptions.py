class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None, status_code: int = 400):
        super().__init__(message, status_code=status_code, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)
        self.details = {"resource_type": resource_type, "resource_id": resource_id}

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)


# Session preconditions

class SessionNotFound(ResourceNotFoundError):
    def __init__(self, session_id: str):
        super().__init__("Academic session", session_id)

class SectionNotFound(ResourceNotFoundError):
    def __init__(self, section_id: str):
        super().__init__("Section", section_id)

class SessionLocked(AppError):
    def __init__(self, session_id: str):
        super().__init__(
            "The academic session is locked. Timetable cannot be modified.",
            status_code=403,
            details={"session_id": session_id},
        )

class SessionArchived(AppError):
    def __init__(self, session_id: str, status: str):
        super().__init__(
            "Cannot generate timetable for a completed or archived session.",
            status_code=403,
            details={"session_id": session_id, "status": status},
        )


# Generation failures

class TemplateMissing(SchedulerError):
    def __init__(self, template_id: str | None = None):
        super().__init__(
            "No active timetable template found. Please create a template first.",
            details={"template_id": template_id},
            status_code=404,
        )

class NoSubjectsConfigured(SchedulerError):
    def __init__(self, section_id: str):
        super().__init__(
            "No subjects configured for this section/class",
            details={"section_id": section_id},
        )

class CapacityExceeded(SchedulerError):
    """Required weekly periods exceed the academic slots of the week."""
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient slots: required {required}, available {available}",
            details={"required": required, "available": available},
        )

class UnsatisfiableRequirements(SchedulerError):
    """Every relaxation level was exhausted with periods still unplaced.

    ``unmet`` holds one structured diagnostic per subject; rendering is left to
    the caller.
    """
    def __init__(self, unmet: list):
        self.unmet = list(unmet)
        super().__init__(
            f"Could not satisfy all requirements for {len(self.unmet)} subject(s)",
            details={"unmet": [item.as_dict() for item in self.unmet]},
            status_code=409,
        )


# Persistence failures

class IntegrityViolation(AppError):
    def __init__(self, kind: str, reference_id: str):
        super().__init__(
            f"Data integrity violation: {kind} id {reference_id} not found",
            status_code=400,
            details={"kind": kind, "id": reference_id},
        )

class DuplicateSlot(AppError):
    def __init__(self, day: int, slot: int):
        self.day = day
        self.slot = slot
        super().__init__(
            f"Duplicate slot at day {day}, slot {slot}. Another generation may be running for this section.",
            status_code=409,
            details={"day": day, "slot": slot},
        )
