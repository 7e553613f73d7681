"""Run the API with uvicorn: ``python -m secure_uploader``."""
import uvicorn

from secure_uploader.config import settings
from secure_uploader.main import create_app

if __name__ == "__main__":
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.API_PORT)
