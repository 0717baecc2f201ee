from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cardgen.gateway.types import GenerationAction


class CardRefIn(BaseModel):
    id: str = Field(min_length=1, max_length=200)
    front: str
    back: str


class GenerationRequestBody(BaseModel):
    """Wire format of the generate-flashcards request body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action: GenerationAction
    topic: str | None = Field(None, max_length=2000)
    num_questions: int = Field(10, alias="numQuestions", strict=True)
    cards: list[CardRefIn] | None = None
    text: str | None = None
    pdf_base64: str | None = Field(None, alias="pdfBase64")

    @field_validator("num_questions", mode="before")
    @classmethod
    def _default_when_null(cls, value: Any) -> Any:
        if value is None:
            from cardgen.core.config import settings

            return settings.default_num_questions
        return value


class GenerationEnvelope(BaseModel):
    """Response envelope: exactly one of ``data`` / ``error`` is set."""

    data: Any | None = None
    error: str | None = None
