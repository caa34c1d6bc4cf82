from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from decision_assistant.api.routes.ai import router as ai_router
from decision_assistant.api.routes.meetings import router as meetings_router

app = FastAPI(
    title="Meeting Decision Assistant API",
    description="AI assistant over recorded meeting decisions with provider fallback",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai_router)
app.include_router(meetings_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    from decision_assistant.config import settings

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
