from __future__ import annotations
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from ..actions import ActionGateway, QuizResponse
from ..deps import get_gateway, read_upload

router = APIRouter(prefix="/quiz", tags=["quiz"])


class CreateQuizRequest(BaseModel):
	notes_text: str = Field(default="", validation_alias="notesText")
	num_questions: int = Field(default=5, validation_alias="numQuestions")


@router.post("", response_model=QuizResponse)
async def create_quiz(req: CreateQuizRequest, gateway: ActionGateway = Depends(get_gateway)):
	return await gateway.handle_create_quiz(req.notes_text, req.num_questions)


@router.post("/pdf", response_model=QuizResponse)
async def create_quiz_from_pdf(
	file: UploadFile = File(...),
	num_questions: int = Form(default=5, alias="numQuestions"),
	gateway: ActionGateway = Depends(get_gateway),
):
	upload = await read_upload(file)
	return await gateway.handle_create_quiz_from_pdf(upload, num_questions)
