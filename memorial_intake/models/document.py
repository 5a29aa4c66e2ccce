from pydantic import BaseModel, ConfigDict

HTML = "text/html"
PLAIN_TEXT = "text/plain"


class Document(BaseModel):
    """A rendered email body or task description, ready to hand to an adapter."""
    model_config = ConfigDict(frozen=True)

    content_type: str
    body: str

    @classmethod
    def html(cls, body: str) -> "Document":
        return cls(content_type=HTML, body=body)

    @classmethod
    def text(cls, body: str) -> "Document":
        return cls(content_type=PLAIN_TEXT, body=body)
