from __future__ import annotations
from fastapi import APIRouter, Depends, File, UploadFile

from ..actions import ActionGateway, PdfTextResponse
from ..deps import get_gateway, read_upload

router = APIRouter(prefix="/extract", tags=["extract"])


@router.post("/pdf", response_model=PdfTextResponse)
async def extract_pdf(file: UploadFile = File(...), gateway: ActionGateway = Depends(get_gateway)):
	upload = await read_upload(file)
	return await gateway.handle_extract_text_from_pdf(upload)
