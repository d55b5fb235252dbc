class BpsError(ValueError):
    """Base exception for everything that can go wrong while applying a BPS
    patch. The message is meant to be shown to the user as-is."""

class HeaderError(BpsError):
    """The patch does not start with the "BPS1" file format id."""

class MetadataSizeError(BpsError):
    """The metadata size in the header is too large to be real."""

class SourceSizeMismatch(BpsError):
    """The original file is not the size the patch was created for."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Patch does not apply to original file: size should be "
            f"{expected}, is {actual}."
        )

class TargetSizeMismatch(BpsError):
    """The patched data is not the size declared in the header."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Patched file size should be {expected}, is {actual}."
        )

class MalformedVarint(BpsError):
    """A BPS integer ran past the end of the data or out of range."""

class OutOfBoundsCopy(BpsError):
    """An action tried to read outside the original or patched data."""

class TruncatedPatchError(BpsError):
    """The instructions did not end exactly at the 12-byte footer."""

class ChecksumMismatch(BpsError):
    # which: "source", "target" or "patch"

    def __init__(self, which, expected, actual):
        self.which = which
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{which.capitalize()} CRC32 mismatch (expected {expected:08x}, "
            f"got {actual:08x})."
        )
