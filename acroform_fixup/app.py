# acroform_fixup/app.py

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from acroform_fixup.config import get_config
from acroform_fixup.routes import forms_router, health_router

# ----------------------
# Logging & Config
# ----------------------
config = get_config()
logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))
logger = logging.getLogger("acroform-fixup")

# ----------------------
# FastAPI app + CORS
# ----------------------
app = FastAPI(title="AcroForm Fixup API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials="*" not in config.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(forms_router)

logger.info(
    "[Backend] AcroForm Fixup API ready (default fixup: %s, upload limit: %d MB)",
    config.default_fixup,
    config.max_upload_mb,
)


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 5000))
    uvicorn.run("acroform_fixup.app:app", host="0.0.0.0", port=port, reload=True)
