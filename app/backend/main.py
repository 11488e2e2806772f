from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import app_service as svc
from errors import register_error_handling
from routers.api_router import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg = svc.load_config()
    svc.logger.info(
        "PML MDA API %s starting: base_url=%s default_project=%s cache_ttl=%ss",
        svc.APP_VERSION,
        cfg.data_base_url or "<unset>",
        cfg.default_project,
        cfg.cache_ttl_seconds,
    )
    yield


app = FastAPI(title="PML MDA API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handling(app, svc.logger)
app.include_router(router)
