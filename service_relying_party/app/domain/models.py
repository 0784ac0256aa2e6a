"""
Data model for the relying party: tokens, sign-up transactions, FIDO2
challenges and the request bodies accepted by the HTTP surface.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Platform(str, Enum):
    """Identity platform the relying party is deployed against."""

    ISV = "isv"    # IBM Security Verify
    ISVA = "isva"  # IBM Security Verify Access


class ChallengeType(str, Enum):
    """WebAuthn ceremony a challenge is generated for."""

    ATTESTATION = "attestation"
    ASSERTION = "assertion"


class Token(BaseModel):
    """OAuth access token issued by the identity platform."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expiry: int = Field(default=0, alias="expires_in")


class OTPChallenge(BaseModel):
    """A pending email one-time password verification."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_id: str = Field(alias="transactionId", min_length=1)
    correlation: Optional[str] = None
    expiry: datetime


class PendingSignup(BaseModel):
    """Sign-up details held until the OTP for ``transaction_id`` is confirmed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_id: str = Field(alias="transactionId")
    name: str
    email: str


class FIDO2Challenge(BaseModel):
    """Credential creation or request options returned by the platform.

    Only ``challenge`` is interpreted; every other option is passed through
    to the caller untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    challenge: str
    type: Optional[ChallengeType] = None


# Request bodies

class UserAuthentication(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1, validation_alias=AliasChoices("username", "email"))
    password: str = Field(min_length=1)


class UserSignUp(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)


class OTPVerification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(alias="transactionId", min_length=1)
    otp: str = Field(min_length=1)


class ChallengeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: ChallengeType
    display_name: Optional[str] = Field(default=None, alias="displayName")


class FIDO2Registration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nickname: str = Field(min_length=1)
    client_data_json: str = Field(alias="clientDataJSON", min_length=1)
    attestation_object: str = Field(alias="attestationObject", min_length=1)
    credential_id: str = Field(alias="credentialId", min_length=1)


class FIDO2Verification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_data_json: str = Field(alias="clientDataJSON", min_length=1)
    authenticator_data: str = Field(alias="authenticatorData", min_length=1)
    credential_id: str = Field(alias="credentialId", min_length=1)
    signature: str = Field(min_length=1)
    user_handle: str = Field(alias="userHandle", min_length=1)
