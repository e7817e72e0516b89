"""
Error taxonomy shared by the ISO downloader and the transcript summarizer.

Every error is fatal where it is detected: the CLI entry points catch
ToolError, report it and exit with its exit_code.
"""


class ToolError(Exception):
    """Base class for all fatal tool errors"""

    exit_code = 1


class ConfigurationError(ToolError):
    """Bad flag, argument or settings value"""
    pass


class DependencyMissingError(ToolError):
    """A required external tool is not installed"""
    pass


class ResolutionError(ToolError):
    """Artifact name could not be determined or no content is available"""
    pass


class TransportError(ToolError):
    """Network fetch failed"""
    pass


class DownloadError(TransportError):
    """Artifact transfer failed (partial file removed)"""
    pass


class APIError(TransportError):
    """LLM API call failed"""
    pass


class IntegrityError(ToolError):
    """Checksum mismatch after the retry budget is exhausted"""

    def __init__(self, message: str, expected: str = "", actual: str = ""):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class CredentialError(ToolError):
    """No usable API key"""
    pass


class OutputError(ToolError):
    """Target path is not writable"""
    pass


class ProcessingError(ToolError):
    """LLM returned no usable text"""
    pass
