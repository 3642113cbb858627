"""API request/response schemas."""
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=4000)


class StreamRequest(BaseModel):
    messages: List[ConversationMessage] = Field(..., min_length=1)


class AskRequest(BaseModel):
    question: str = Field(..., max_length=500)

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be empty")
        return value


class ProductStub(BaseModel):
    id: int
    name: str
    slug: str
    price: int
    image: Optional[str] = None


class AskResponse(BaseModel):
    success: bool
    answer: Optional[str] = None
    products: Optional[List[ProductStub]] = None
    suggestions: Optional[List[str]] = None
    error: Optional[str] = None
