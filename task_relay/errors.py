from typing import Optional


class SubmissionError(Exception):
    """Base for every failure the submission endpoint reports to the caller."""

    default_message = "Submission failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UploadRejected(SubmissionError):
    default_message = "Upload rejected"


class InvalidFileType(UploadRejected):
    default_message = "Invalid file type"


class PayloadTooLarge(UploadRejected):
    default_message = "File too large"


class UnexpectedFile(UploadRejected):
    default_message = "Unexpected field"


class InvalidSubmission(SubmissionError):
    default_message = "Invalid submission"


class RelayFailed(SubmissionError):
    default_message = "Relay failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
