"""
Script Ingestion Errors

ScriptIngestionError
└── HardFailure                  aborts the comprehension pass
    ├── ComprehensionParseError  response is not a JSON object
    ├── EmptyPagesError          response parsed but has no pages
    ├── ComprehensionTimeoutError
    └── MissingCredentialsError  strict mode without an API key

Structural problems (missing speaker, duplicate numbers, unknown block types)
are never raised; they are collected as warning strings on the result.
"""


class ScriptIngestionError(Exception):
    """Base class for every error raised by this package."""


class HardFailure(ScriptIngestionError):
    """The comprehension pass cannot produce a result."""


class ComprehensionParseError(HardFailure):
    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class EmptyPagesError(HardFailure):
    def __init__(self, message: str = "AI parse produced empty pages array - cannot recover."):
        super().__init__(message)


class ComprehensionTimeoutError(HardFailure):
    def __init__(self, timeout: float):
        super().__init__(f"Comprehension pass timed out after {timeout}s")
        self.timeout = timeout


class MissingCredentialsError(HardFailure):
    def __init__(self, message: str = "OPENAI_API_KEY is required in strict mode"):
        super().__init__(message)
