# Purpose: Typed errors raised by the QR codec (decode, encode and directory configuration).

class CodecError(ValueError):
    """
    Base class for every codec failure.

    Attributes:
        message: developer-facing description
        code: stable error code, defaults to the class name
        tag: the EMV tag at fault, when there is one
        details: extra context (expected/actual values, offsets)
    """

    user_message = "The QR code could not be processed."

    def __init__(self, message, tag=None, code=None, details=None):
        self.message = message
        self.tag = tag
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        data = {"error": self.code, "message": self.message, "details": self.details}
        if self.tag is not None:
            data["tag"] = self.tag
        return data

    def __str__(self):
        if self.tag is not None:
            return f"[{self.code}] tag {self.tag}: {self.message}"
        return f"[{self.code}] {self.message}"


class CorruptedData(CodecError):
    """Payload ended before a declared tag, length or value was complete."""
    user_message = "The QR code appears damaged or incomplete."


class InvalidTag(CodecError):
    """Tag is not two decimal digits."""
    user_message = "The QR code contains an unreadable field."


class InvalidLength(CodecError):
    """Length is not a two digit decimal, or a value is too long to encode."""
    user_message = "The QR code contains a field with an invalid length."


class InvalidValue(CodecError):
    """A field failed its semantic rule."""
    user_message = "The QR code contains an invalid value."

    def __init__(self, tag, message, details=None):
        super().__init__(message, tag=tag, details=details)


class InvalidChecksum(CodecError):
    user_message = "The QR code failed its integrity check. Please rescan."

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"checksum mismatch: computed {expected}, payload carries {actual}",
            tag="63",
            details={"expected": expected, "actual": actual},
        )


class MissingRequiredField(CodecError):
    user_message = "The QR code is missing required information."

    def __init__(self, tag, message=None):
        super().__init__(message or f"required tag {tag} is absent", tag=tag)


class UnsupportedCountryOrProfile(CodecError):
    user_message = "QR codes from this country are not supported."


class InvalidConfiguration(CodecError):
    """Encoder request combines templates, PSPs or profiles in a disallowed way."""
    user_message = "The payment request is not valid for the selected country."
