"""Base Pydantic model configuration for OAUTHBEARER models.

All models inherit from OAuthBearerBaseModel to ensure consistent behavior:
- Immutability (frozen=True); tokens and messages never change after creation
- Strict validation (extra="forbid") to catch typos and invalid fields
- Flexible field naming (populate_by_name=True) for alias support
"""

from pydantic import BaseModel, ConfigDict


class OAuthBearerBaseModel(BaseModel):
    """Base model for all OAUTHBEARER entities.

    Example:
        >>> class MyModel(OAuthBearerBaseModel):
        ...     name: str
        >>> obj = MyModel(name="test")
        >>> obj.name = "other"  # Raises ValidationError (frozen)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=False,
        validate_default=True,
    )
