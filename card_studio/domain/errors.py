# card_studio/domain/errors.py
"""Error kinds surfaced to the user.

Every error carries a human-readable ``message`` that ends up in the
composition's single error slot. ``http_status`` is what the API answers with
when the error escapes a request handler.
"""


class CardStudioError(Exception):
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"message": self.message, "code": type(self).__name__}


class ConfigurationMissing(CardStudioError):
    http_status = 503


class AuthUnavailable(CardStudioError):
    http_status = 502


class UploadRejected(CardStudioError):
    http_status = 502


class ExportFailed(CardStudioError):
    http_status = 502


class ExportInProgress(ExportFailed):
    http_status = 409


class UnknownCatalogEntry(ValueError):
    pass
