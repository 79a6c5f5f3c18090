from __future__ import annotations


class ExportError(Exception):
    """Base class for failures surfaced by an export call."""

    def __init__(self, message: str, *, export_format: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.export_format = export_format


class EmptyInput(ExportError):
    def __init__(self, *, export_format: str | None = None) -> None:
        super().__init__('No highlights available to export', export_format=export_format)


class MeasurementFailure(ExportError):
    """A screenshot's pixel size could not be decoded.

    Only raised inside the PDF measurement pre-pass, where it is caught and the
    screenshot falls back to a default width.
    """


class RenderFailure(ExportError):
    pass
