from fastapi import FastAPI
from dotenv import load_dotenv

load_dotenv()

from infrastructure.metrics.metrics import metrics_endpoint
from application.service.session_store import SessionStore
from domain.config import get_session_config
from domain.services import available_providers
from app.routers.v1 import router

app = FastAPI(title="statement-gateway")
app.state.session_store = SessionStore(max_sessions=get_session_config().max_sessions)

@app.get("/metrics")
async def metrics():
    return metrics_endpoint()

@app.get("/health")
async def health():
    return {"status": "ok", "message": "statement-gateway is running", "providers": available_providers()}

app.include_router(router)
