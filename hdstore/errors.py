"""
Error taxonomy for hdstore

Every error carries the exact message returned to the client in the
``{"success": false, "error": ...}`` envelope.
"""


class StoreError(Exception):
    """Base exception for all request-level failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingParameter(StoreError):
    """A required form parameter was not supplied"""

    def __init__(self, name: str):
        super().__init__(f"Param {name} is missing")
        self.name = name


class MissingUpload(StoreError):
    """The multipart upload part was not supplied"""

    def __init__(self, name: str):
        super().__init__(f"File {name} is missing")
        self.name = name


class ExtensionNotAllowed(StoreError):
    """Extension outside the allow-list"""

    def __init__(self, extension: str = ""):
        super().__init__("Extension is not allowed")
        self.extension = extension


class InvalidName(StoreError):
    """File or folder name that could escape the user root"""

    def __init__(self, name: str):
        super().__init__(f"Invalid name: {name}")
        self.name = name


class Unauthorized(StoreError):
    """No user bound to the current session"""

    def __init__(self):
        super().__init__("User not logged in")


class AuthenticationFailed(StoreError):
    """Unknown user or wrong password"""

    def __init__(self):
        super().__init__("User not found")


class FileNotFound(StoreError):
    """Source file absent"""

    def __init__(self, display_path: str):
        super().__init__(f"File not found:{display_path}")
        self.display_path = display_path


class UploadFailed(StoreError):
    """Upload could not be persisted"""

    def __init__(self, reason: str = ""):
        super().__init__("Upload error")
        self.reason = reason


class MalformedRequest(StoreError):
    """Request body could not be parsed as a form"""

    def __init__(self, reason: str = ""):
        super().__init__("Malformed request")
        self.reason = reason
