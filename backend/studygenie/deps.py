from __future__ import annotations
from fastapi import HTTPException, Request, UploadFile

from .actions import ActionGateway
from .data_uri import UploadedFile


def get_gateway(request: Request) -> ActionGateway:
	gateway = getattr(request.app.state, "gateway", None)
	if gateway is None:
		raise HTTPException(status_code=503, detail="GEMINI_API_KEY is not configured")
	return gateway


async def read_upload(file: UploadFile) -> UploadedFile:
	content = await file.read()
	return UploadedFile(filename=file.filename or "", content_type=file.content_type or "", content=content)
