from __future__ import annotations


class InvalidArgument(TypeError):
    """Raised when a debounce target or timeline cannot be used."""

    def __init__(self, detail: str, *, value: object = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.value = value
