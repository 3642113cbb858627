"""Client-side conversation data types."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from storefront_assistant.utils.helpers import new_message_id


@dataclass(frozen=True)
class ProductStub:
    id: int
    name: str
    slug: str
    price: int
    image: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductStub":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            slug=str(data["slug"]),
            price=int(data["price"]),
            image=data.get("image"),
        )


@dataclass
class Message:
    """One turn of the conversation.

    ``content`` of a streamed assistant reply only ever grows while the
    stream is open.
    """

    role: str
    content: str = ""
    id: str = field(default_factory=new_message_id)
    products: Optional[List[ProductStub]] = None
    suggestions: Optional[List[str]] = None
    is_error: bool = False

    def to_history(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class AskResult:
    answer: str
    products: List[ProductStub] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
