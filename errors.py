"""
errors.py — Failure taxonomy shared by the roster, evidence store and flows.

Every error carries a reason key; ERROR_MESSAGES turns it into the short
banner text the kiosk shows.
"""


class KioskError(Exception):
    reason = "generic"

    def __init__(self, message, reason=None, code=None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.code = code

    def banner(self):
        template = ERROR_MESSAGES.get(self.reason, ERROR_MESSAGES["generic"])
        return template.format(code=self.code or "")


class NotFound(KioskError):
    reason = "not_found"


class Conflict(KioskError):
    reason = "conflict"


class ValidationFailure(KioskError):
    reason = "invalid"


class IOFailure(KioskError):
    reason = "io_failure"


# ---------------------------------------------------------------------------
# ERROR MESSAGES
# ---------------------------------------------------------------------------

ERROR_MESSAGES = {
    "not_found": "No entrant found for code {code}",
    "entrant_not_found": "No entrant with entry code {code}",
    "artifact_not_found": "No entry registered for artifact code {code}",
    "conflict": "Code {code} is already in use",
    "artifact_taken": "Artifact code {code} is already bound to another entrant",
    "entry_code_taken": "Entry code {code} is already used by another entrant",
    "already_checked_in": "Entrant {code} is already checked in",
    "already_scored": "Artifact {code} has already been scored",
    "invalid": "Invalid input",
    "photo_required": "Take a photo before saving",
    "score_invalid": "Enter a numeric score",
    "empty_code": "Scanned code is empty",
    "empty_entry_code": "Entry code must not be empty",
    "empty_roster": "Roster file is empty or unreadable",
    "io_failure": "Could not write data, please try again",
    "generic": "Something went wrong, please try again",
}
