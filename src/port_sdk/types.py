"""Wire types for the Port authentication endpoints.

Pydantic models mirroring the camelCase JSON exchanged with
``/v1/auth/access_token``. Fields can be populated by either their Python
name or their wire alias.
"""

from pydantic import BaseModel, ConfigDict, Field


class AccessTokenRequest(BaseModel):
    """Client-credentials payload sent to the token endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    client_id: str = Field(alias="clientId")
    client_secret: str = Field(alias="clientSecret", repr=False)


class AccessTokenResponse(BaseModel):
    """Token endpoint reply.

    ``expires_in`` is in seconds; 0 means the server omitted it.
    """

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field("", alias="accessToken", repr=False)
    expires_in: int = Field(0, alias="expiresIn")
