"""
Application errors for clean API error handling.

Use ServiceUnavailableError when a dependency (vector store, embeddings, LLM)
is misconfigured or unreachable. SkillError subclasses are request problems the
API maps to 4xx before any skill or gate work happens.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SkillError(Exception):
    status_code = 400

    def __init__(self, skill_name: str, message: str) -> None:
        self.skill_name = skill_name
        self.message = message
        super().__init__(message)


class SkillNotFoundError(SkillError):
    """Raised when a skill name is not in the registry."""

    status_code = 404

    def __init__(self, skill_name: str) -> None:
        super().__init__(skill_name, f"Skill {skill_name!r} not found")


class InvalidSkillParametersError(SkillError):
    """Raised when required skill parameters are missing or empty."""

    def __init__(self, skill_name: str, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(skill_name, f"Missing required parameter(s) for {skill_name}: {', '.join(missing)}")
