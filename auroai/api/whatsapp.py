"""
WhatsApp connection API routes.

- POST /api/whatsapp/connect: save number, request a verification code
- POST /api/whatsapp/verify: submit the 6-digit code
- POST /api/whatsapp/disconnect: unlink the number
"""
import asyncio

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auroai.core.auth import AuthContext, get_current_user
from auroai.features.whatsapp.service import WhatsAppService, get_whatsapp_service


router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


class ConnectRequest(BaseModel):
    ddi: str = Field(..., min_length=1, max_length=4)
    ddd: str = Field(..., min_length=2, max_length=3)
    number: str = Field(..., min_length=8, max_length=12)


class VerifyRequest(BaseModel):
    code: str = Field(..., pattern=r"^\d{6}$")


@router.post("/connect")
async def connect_whatsapp(
    payload: ConnectRequest,
    auth: AuthContext = Depends(get_current_user),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    phone_number = await asyncio.to_thread(
        service.connect, auth.user.user_id, payload.ddi, payload.ddd, payload.number
    )
    return {"code_sent": True, "phone_number": phone_number}


@router.post("/verify")
async def verify_whatsapp(
    payload: VerifyRequest,
    auth: AuthContext = Depends(get_current_user),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    connected = await asyncio.to_thread(service.verify, auth.user.user_id, payload.code)
    return {"connected": connected}


@router.post("/disconnect")
async def disconnect_whatsapp(
    auth: AuthContext = Depends(get_current_user),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    await asyncio.to_thread(service.disconnect, auth.user.user_id)
    return {"connected": False}
