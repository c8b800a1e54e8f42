from fastapi import FastAPI

from nutrichat.api.chat import router as chat_router
from nutrichat.services.llm import close_shared_http_client

app = FastAPI(title="NutriChat")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_shared_http_client()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api")
def api_root() -> dict[str, str]:
    return {"service": "NutriChat API", "status": "ok"}


app.include_router(chat_router)
