"""
Error types raised by the ClipScript core.

Every error carries a message that can be shown to the user as-is.
"""


class ClipScriptError(Exception):
    """Base class for all ClipScript errors."""
    default_message = "Something went wrong. Please try again."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


# ============= Validation (recoverable, user-facing) =============

class ValidationError(ClipScriptError):
    """A user-correctable condition."""


class InsufficientCredits(ValidationError):
    """Raised when a debit exceeds the current balance."""
    default_message = "Insufficient credits. Please purchase more credits."

    def __init__(self, balance=None, required=None, message=None):
        self.balance = balance
        self.required = required
        super().__init__(message)


class EmailAlreadyRegistered(ValidationError):
    default_message = "This email is already registered. Try logging in."


class AccountNotFound(ValidationError):
    default_message = "Account not found. Please sign up first."


class ProviderMismatch(ValidationError):
    default_message = "This account is linked with Google. Please use Continue with Google."


class InvalidCredentials(ValidationError):
    default_message = "Incorrect password."


class NotSignedIn(ValidationError):
    default_message = "Please sign in."


class PackageNotFound(ValidationError):
    def __init__(self, package_id):
        self.package_id = package_id
        super().__init__(f"Credit package not found: {package_id}")


class ContentNotFound(ValidationError):
    def __init__(self, record_id):
        self.record_id = record_id
        super().__init__(f"Script not found in your library: {record_id}")


class TopicRejected(ValidationError):
    """Raised when the topic validator flags a prompt as unusable."""
    default_message = "That topic doesn't look like something we can write about."

    def __init__(self, message=None, suggestions=None):
        self.suggestions = list(suggestions or [])
        super().__init__(message)


# ============= Integrity (precondition violations) =============

class IntegrityError(ClipScriptError):
    """A caller bug or broken precondition."""


class UserNotFound(IntegrityError):
    def __init__(self, user_id=None):
        self.user_id = user_id
        message = "User not found"
        if user_id:
            message += f": {user_id}"
        super().__init__(message)


# ============= Storage (engine failures) =============

class StorageError(ClipScriptError):
    """Base class for storage engine failures."""
    default_message = "Local storage failed. Please try again."

    def __init__(self, message=None, original_error=None):
        self.original_error = original_error
        super().__init__(message)


class StorageUnavailable(StorageError):
    default_message = "Local storage is unavailable. Check disk space and permissions."


class WriteConflict(StorageError):
    default_message = "Another operation is writing to local storage. Please try again."


class DuplicateKey(StorageError):
    def __init__(self, collection, key=None, original_error=None):
        self.collection = collection
        self.key = key
        message = f"Record already exists in {collection}"
        if key:
            message += f": {key}"
        super().__init__(message, original_error=original_error)
