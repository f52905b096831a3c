from typing import Any, Optional


class ConfigurationException(Exception):
    """
    A credential the operation needs is not configured.

    Raised before any network call is made. The message names the environment variable.
    """

    def __init__(self, setting: str) -> None:
        super().__init__(f"{setting} is not configured")
        self.setting = setting


class ProviderException(Exception):
    """
    A call to an upstream provider failed.

    ``detail`` holds what the upstream said (its decoded body) or, for transport failures,
    the error text. Handlers that relay failures return it as the ``error`` value.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        detail: Any = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.detail = detail if detail is not None else message
        self.status = status

    @staticmethod
    def upstream_status(provider: str, status: int, body: Any) -> "ProviderException":
        """The provider answered with a non-2xx status."""
        return ProviderException(
            f"{provider} responded with status {status}",
            provider,
            detail=body or f"Request failed with status code {status}",
            status=status,
        )

    @staticmethod
    def transport(provider: str, error: BaseException) -> "ProviderException":
        """The request never produced a response."""
        return ProviderException(
            f"{provider} request failed: {error}",
            provider,
            detail=str(error) or type(error).__name__,
        )

    @staticmethod
    def malformed(provider: str, reason: str, body: Any = None) -> "ProviderException":
        """The provider answered 2xx but the body is not what was expected."""
        return ProviderException(
            f"{provider} returned an unexpected response: {reason}",
            provider,
            detail=body if body is not None else reason,
        )
