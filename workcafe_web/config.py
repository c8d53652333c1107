import os


class Config:
    # FastAPI backend, see workcafe.core.config (PORT defaults to 5000)
    API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:5000")
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-change-me")
    API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "20"))
