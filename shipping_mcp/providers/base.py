"""
Base provider interface.
"""

from abc import ABC, abstractmethod
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from shipping_mcp.services.client import ServiceClient
from shipping_mcp.services.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def validate_input(model: type[M], data: Any, service_id: str | None = None) -> M:
    """
    Validate caller input into `model` before any network call.

    Raises:
        ValidationError: listing every offending field
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        problems = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "(root)",
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
        raise ValidationError(
            f"invalid {model.__name__}: {summary}",
            code="VALIDATION_ERROR",
            details={"errors": problems},
            service_id=service_id,
        ) from e


def require_id(value: Any, name: str, service_id: str | None = None) -> str:
    """Reject empty or path-breaking resource identifiers."""
    text = str(value).strip() if value is not None else ""
    if not text or "/" in text or "?" in text:
        raise ValidationError(
            f"{name} must be a non-empty identifier",
            code="VALIDATION_ERROR",
            details={"errors": [{"field": name, "message": "invalid identifier"}]},
            service_id=service_id,
        )
    return text


class BaseProvider(ABC):
    """
    Abstract base class for provider REST shims.

    All providers should:
    - Use ServiceClient for HTTP requests (caching, retries, error taxonomy)
    - Validate inputs with Pydantic models before any I/O
    - Let DomainError propagate to the tool layer
    """

    def __init__(self, client: ServiceClient):
        self.client = client

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this provider."""
        ...

    def is_configured(self) -> bool:
        """Check if the provider has a credential."""
        return bool(self.client.config.api_key)

    def validate(self, model: type[M], data: Any) -> M:
        return validate_input(model, data, self.service_id)

    def require_id(self, value: Any, name: str) -> str:
        return require_id(value, name, self.service_id)

    async def health_check(self) -> dict[str, Any]:
        return await self.client.health_check()

    def get_stats(self) -> dict[str, Any]:
        return self.client.get_stats()

    async def close(self) -> None:
        await self.client.close()
