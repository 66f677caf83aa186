class NXTError(Exception):
    """Base exception for nxt_lcp."""
    # Set on errors after which the link can no longer be trusted
    session_fatal = False

class DeviceNotFoundError(NXTError):
    """Raised when the serial port cannot be opened."""
    pass

class TransportError(NXTError):
    """Raised when a read or write on the serial link fails."""
    session_fatal = True

class TransportTimeoutError(TransportError):
    """Raised when a read or write on the serial link exceeds its deadline."""
    pass

class FrameMismatchError(NXTError):
    """Raised when a reply header does not match the command that was sent."""
    session_fatal = True

    def __init__(self, operation: str, expected, actual):
        super().__init__(f"{operation}: invalid response, expected {expected}, got {actual}")
        self.operation = operation
        self.expected = expected
        self.actual = actual

class DeviceStatusError(NXTError):
    """Raised when the brick answers a well-formed reply with a non-zero status."""

    def __init__(self, operation: str, status: int):
        name = STATUS_MESSAGES.get(status, "unknown error")
        super().__init__(f"{operation}: device reported status 0x{status:02X} ({name})")
        self.operation = operation
        self.status = status

class ResponseDecodeError(NXTError):
    """Raised when a reply field holds a value outside its protocol enumeration."""
    pass

class ValidationError(NXTError, ValueError):
    """Raised when an argument cannot be encoded; nothing is sent to the device."""
    pass

class SessionBusyError(NXTError):
    """Raised when a command is issued while another one is still awaiting its reply."""
    pass

class SessionClosedError(NXTError):
    """Raised when a command is issued on a session that is not connected."""
    pass


STATUS_MESSAGES = {
    0x20: "pending communication transaction in progress",
    0x40: "specified mailbox queue is empty",
    0x81: "no more handles",
    0x82: "no space",
    0x83: "no more files",
    0x87: "file not found",
    0x8F: "file already exists",
    0xBD: "request failed",
    0xBE: "unknown command opcode",
    0xBF: "insane packet",
    0xC0: "data contains out-of-range values",
    0xDD: "communication bus error",
    0xDE: "no free memory in communication buffer",
    0xDF: "specified channel/connection is not valid",
    0xE0: "specified channel/connection not configured or busy",
    0xEC: "no active program",
    0xED: "illegal size specified",
    0xEE: "illegal mailbox queue ID specified",
    0xEF: "attempted to access invalid field of a structure",
    0xF0: "bad input or output specified",
    0xFB: "insufficient memory available",
    0xFF: "bad arguments",
}
