from fastapi import APIRouter, Depends, HTTPException

from clinic_bot.api.v1.schemas import InboundMessageSchema, OutboundMessagesSchema
from clinic_bot.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from clinic_bot.wiring.dependencies import get_handle_incoming_message_use_case

router = APIRouter()


@router.post("/messages", response_model=OutboundMessagesSchema)
def post_message(
    req: InboundMessageSchema,
    uc: HandleIncomingMessageUseCase = Depends(get_handle_incoming_message_use_case),
):
    sender_id = req.sender_id.strip()
    if not sender_id:
        raise HTTPException(status_code=400, detail="sender_id must not be blank")

    messages = uc.reply(sender_id=sender_id, text=req.text)
    return OutboundMessagesSchema(sender_id=sender_id, messages=messages)
