"""
Chat Module - Routes
=====================
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.chat.service import chat_service

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("")
async def chat(data: Dict[str, Any], db: Session = Depends(get_db)):
    return chat_service.reply(db, data.get("messages"))
