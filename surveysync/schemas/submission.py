"""Survey answer submission schemas (backend REST contract)."""
from typing import Optional, List, Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class Responser(BaseModel):
    """Respondent block of an answer submission."""
    name: Optional[str] = None
    location: Optional[str] = None
    house_image_url: Optional[str] = None
    photo_url: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class AnswerRow(BaseModel):
    """One answer row; media-bearing rows carry audio_url or video_url."""
    question_id: int
    selected_option_id: Optional[int] = None
    sub_question_id: Optional[int] = None
    custom_answer: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class SubmissionPayload(BaseModel):
    """
    Body of ``POST /survey/{survey_id}/answers``.

    While queued, media fields may hold a device-local reference instead of
    a remote URL.
    """
    responser: Responser = Field(default_factory=Responser)
    answers: List[AnswerRow] = []

    model_config = ConfigDict(extra="allow")

    def to_request_body(self) -> Dict[str, Any]:
        """Serialize for the backend; answer rows omit empty fields."""
        body = self.model_dump(mode="json", exclude={"answers"})
        body["answers"] = [
            row.model_dump(mode="json", exclude_none=True) for row in self.answers
        ]
        return body


class UploadResult(BaseModel):
    """Response of ``POST /uploads``."""
    url: str = Field(..., min_length=1)
    content_type: Optional[str] = Field(None, alias="contentType")
    size: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class SubmissionReceipt(BaseModel):
    """Response of ``POST /survey/{survey_id}/answers``."""
    message: Optional[str] = None
    submission_id: Optional[Any] = None
    submitted_at: Optional[str] = None
    inserted: Optional[int] = None

    model_config = ConfigDict(extra="allow")
