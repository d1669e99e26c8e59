from __future__ import annotations


class RefineKitError(Exception):
    pass


class SearchError(RefineKitError):
    """Raised by a search service when a request could not be executed."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class StaleSelection(RefineKitError):
    def __init__(self, attribute: str, value: str) -> None:
        super().__init__(f"{value!r} is not a known value of {attribute!r}")
        self.attribute = attribute
        self.value = value


class DuplicateGroupRegistration(RefineKitError):
    def __init__(self, group: str) -> None:
        super().__init__(f"filter group {group!r} already has a registered owner")
        self.group = group


class InvalidGroupOperator(RefineKitError, ValueError):
    def __init__(self, operator: object) -> None:
        super().__init__(f"invalid filter group operator: {operator!r}")
        self.operator = operator
