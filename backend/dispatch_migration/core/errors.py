class MigrationError(RuntimeError):
    pass


class UnknownEntityError(MigrationError, ValueError):
    def __init__(self, name: str, known: list[str] | None = None):
        self.name = name
        self.known = known or []
        message = f"Unknown entity type: {name}"
        if self.known:
            message += f" (expected one of: {', '.join(self.known)})"
        super().__init__(message)


class ConfigurationError(MigrationError):
    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid configuration: " + "; ".join(problems))


class RestClientError(MigrationError):
    def __init__(
        self, status_code: int | None, detail: str, table: str | None = None
    ):
        self.status_code = status_code
        self.detail = detail
        self.table = table
        target = f" on {table}" if table else ""
        code = status_code if status_code is not None else "no response"
        super().__init__(f"Supabase REST request failed{target} ({code}): {detail}")


class CheckpointError(MigrationError):
    pass
