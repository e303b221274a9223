from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QuizUpsertRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = Field(default=None, max_length=128)
    title: str | None = Field(default=None, max_length=200)
    isPublic: bool | None = None
    creatorAddress: str | None = Field(default=None, max_length=128)
    totalQuestions: int | None = Field(default=None, ge=1, le=10_000)

    def metadata_fields(self) -> dict[str, Any]:
        fields = self.model_dump(exclude_none=True)
        fields.pop("id", None)
        return fields


class SponsorTransactionRequest(BaseModel):
    transactionBlockKindBytes: str = Field(min_length=1)
    zkloginJwt: str | None = None
    network: str | None = Field(default=None, max_length=32)


class SignSponsoredTransactionRequest(BaseModel):
    signature: str = Field(min_length=1)
