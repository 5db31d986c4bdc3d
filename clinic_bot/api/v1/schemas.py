from pydantic import BaseModel, Field


class InboundMessageSchema(BaseModel):
    sender_id: str = Field(min_length=1)
    text: str


class OutboundMessagesSchema(BaseModel):
    sender_id: str
    messages: list[str]
