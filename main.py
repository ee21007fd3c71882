# main.py
import os

import uvicorn

from server import app, settings

if __name__ == "__main__":
    host = os.getenv("APP_HOST", "127.0.0.1")   # default: solo localhost
    port = int(os.getenv("PORT", 8000))       # porta configurabile
    # il box di validazione è pensato per lo sviluppo: un solo worker
    uvicorn.run(app, host=host, port=port, log_level=settings.LOG_LEVEL.lower())
