from __future__ import annotations
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..actions import ActionGateway, KeyPointsResponse
from ..deps import get_gateway

router = APIRouter(prefix="/key-points", tags=["key_points"])

# Weightages offered by the answer-writing UI
MARK_WEIGHTAGES = [2, 4, 8, 10, 12, 16, 20]


class KeyPointsRequest(BaseModel):
	answer_content: str = Field(default="", validation_alias="answerContent")
	mark_weightage: int = Field(default=MARK_WEIGHTAGES[0], validation_alias="markWeightage")


@router.get("/weightages")
async def weightages():
	return {"markWeightages": MARK_WEIGHTAGES}


@router.post("", response_model=KeyPointsResponse)
async def generate_key_points(req: KeyPointsRequest, gateway: ActionGateway = Depends(get_gateway)):
	return await gateway.handle_generate_key_points(req.answer_content, req.mark_weightage)
