__all__ = (
    "DownpourError",
    "TransportError",
    "ResponseStatusError",
    "UnsupportedSchemeError",
    "IncompleteTransferError",
)


class DownpourError(Exception): ...


class TransportError(DownpourError): ...


class UnsupportedSchemeError(DownpourError): ...


class ResponseStatusError(DownpourError):
    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"Server responded with status {status_code} for {url}")
        self.url = url
        self.status_code = status_code


class IncompleteTransferError(DownpourError, OSError):
    def __init__(self, expected_bytes: int, received_bytes: int) -> None:
        super().__init__(
            f"File was not completely downloaded! Expected={expected_bytes} actual={received_bytes}"
        )
        self.expected_bytes = expected_bytes
        self.received_bytes = received_bytes
