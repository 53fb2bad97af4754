# =============================================
# File: dawaverify/services/errors.py
# Purpose: Domain exceptions raised by the scan lifecycle
# =============================================
from __future__ import annotations


class DawaVerifyError(Exception):
    """Base class for every error raised by the scan core."""


class CaptureError(DawaVerifyError):
    """No image was selected, or the upload is not a readable image."""


class SessionBusy(DawaVerifyError):
    """A capture arrived while a session (or the user's previous one) is in flight."""


class AnalysisFailure(DawaVerifyError):
    """The external analysis call was rejected, failed or timed out."""

    user_message = "Verification failed. Please try again."


class MalformedResponse(AnalysisFailure):
    """The analysis service answered, but required fields are missing or mistyped."""

    user_message = "The verification service returned an unreadable result."


class PersistenceFailure(DawaVerifyError):
    """Reading or writing the persisted history blob failed."""
