import logging

from fastapi import FastAPI

from .actions import ActionGateway
from .gemini_client import GeminiClient
from .settings import settings
from .routers import health
from .routers import study_plan
from .routers import quiz
from .routers import key_points
from .routers import extract

logger = logging.getLogger(__name__)

app = FastAPI(title="StudyGenie API")
app.include_router(health.router)
app.include_router(study_plan.router)
app.include_router(quiz.router)
app.include_router(key_points.router)
app.include_router(extract.router)

@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}

@app.on_event("startup")
async def startup_event():
	logging.basicConfig(
		level=settings.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	app.state.client = None
	app.state.gateway = None
	if not settings.gemini_api_key:
		logger.warning("GEMINI_API_KEY is not configured; AI endpoints will answer 503")
		return
	# One client for every flow; the model id is chosen per call
	app.state.client = GeminiClient()
	app.state.gateway = ActionGateway(app.state.client, settings)

@app.on_event("shutdown")
async def shutdown_event():
	client = getattr(app.state, "client", None)
	if client is not None:
		await client.aclose()
