from __future__ import annotations
from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field

from ..actions import ActionGateway, StudyPlanRequest, StudyPlanResponse, TopicExtractionResponse
from ..data_uri import file_to_data_uri
from ..deps import get_gateway, read_upload

router = APIRouter(prefix="/study-plan", tags=["study_plan"])


class ExtractTopicsRequest(BaseModel):
	image_data_uri: str = Field(validation_alias="imageDataUri")


@router.post("", response_model=StudyPlanResponse)
async def generate_study_plan(req: StudyPlanRequest, gateway: ActionGateway = Depends(get_gateway)):
	return await gateway.handle_generate_study_plan(req)


@router.post("/extract-topics", response_model=TopicExtractionResponse)
async def extract_topics(req: ExtractTopicsRequest, gateway: ActionGateway = Depends(get_gateway)):
	return await gateway.handle_image_upload_for_topic_extraction(req.image_data_uri)


@router.post("/extract-topics/upload", response_model=TopicExtractionResponse)
async def extract_topics_upload(file: UploadFile = File(...), gateway: ActionGateway = Depends(get_gateway)):
	upload = await read_upload(file)
	return await gateway.handle_image_upload_for_topic_extraction(file_to_data_uri(upload))
