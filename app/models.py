"""
Data models for the uploader.

Nothing here is persisted: User lives only inside the sealed session cookie
and FileUpload only for the lifetime of one upload request (and the redirect
that hands it to the success page).
"""
from datetime import datetime, UTC

from pydantic import BaseModel, ConfigDict, Field

# Format of the uploadTime query parameter handed to /success
UPLOAD_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class User(BaseModel):
    """
    Authenticated identity, built once by the OAuth flow after the ID token
    is verified.

    - id: provider subject identifier (Google "sub").
    - name, email, picture: profile claims; may be empty.
    - provider: identity provider tag, "google".
    - created: UTC time the session was minted.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    email: str = ""
    picture: str = ""
    provider: str = "google"
    created: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FileUpload(BaseModel):
    """One successful upload; forwarded to /success via query parameters."""
    id: str
    filename: str
    size: int
    content_type: str
    storage_key: str = ""
    storage_url: str = ""
    uploaded_at: datetime
    user_id: str

    def success_query(self) -> dict[str, str]:
        return {
            "filename": self.filename,
            "size": str(self.size),
            "contentType": self.content_type,
            "url": self.storage_url,
            "uploadTime": self.uploaded_at.strftime(UPLOAD_TIME_FORMAT),
        }

