"""
Pydantic schemas for the Google OAuth flow
"""

from pydantic import BaseModel, Field, validator


def _check_redirect_uri(v):
    if not v.startswith(("http://", "https://")):
        raise ValueError("redirect_uri must be an http(s) URL")
    return v


class OAuthStartRequest(BaseModel):
    redirect_uri: str = Field(..., description="Loopback or app URL Google redirects back to")

    @validator("redirect_uri")
    def validate_redirect_uri(cls, v):
        return _check_redirect_uri(v)


class OAuthCallbackRequest(BaseModel):
    """
    Authorization code plus the PKCE verifier issued by /auth/google/start

    The client compares `state` with the value it received from the start
    call before posting here.
    """

    code: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    code_verifier: str = Field(..., min_length=43, max_length=128)
    redirect_uri: str

    @validator("redirect_uri")
    def validate_redirect_uri(cls, v):
        return _check_redirect_uri(v)
