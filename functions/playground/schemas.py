"""
Pydantic schemas for the functions playground.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class UploadUrlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName", min_length=1)
    bucket_name: Optional[str] = Field(default=None, alias="bucketName")


class UploadUrlResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signed_url: str = Field(..., alias="signedUrl")
    path: str
    token: Optional[str] = None
    bucket_name: str = Field(..., alias="bucketName")


class TodoPayload(BaseModel):
    """Body accepted by the HTTP-verb todo functions."""

    id: Optional[Union[StrictInt, StrictStr]] = None
    task: Optional[str] = None
    is_complete: Optional[bool] = None
    user_id: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(include={"task", "is_complete"}, exclude_none=True)


class HelloRequest(BaseModel):
    name: str = "World"


class ClaimsUser(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class ClaimsResponse(BaseModel):
    message: str
    user: ClaimsUser
    claims: dict
