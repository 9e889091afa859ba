import logging

import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.responses import RedirectResponse
from starlette.routing import Route

load_dotenv()

# Import FastAPI app
from coblog.web.api.app import api
# Import settings
from coblog.shared.config import get_settings

settings = get_settings()

# Configure root logger
handlers = [logging.StreamHandler()]
if settings.log_file:
    handlers.append(logging.FileHandler(settings.log_file))

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=handlers,
)


async def root(request):
    return RedirectResponse(url="/api/health")


routes = [
    Route("/", root),
]

app = Starlette(
    routes=routes,
    debug=settings.debug,
)

# Mount the FastAPI application at /api
app.mount("/api", api)

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.web_host, port=settings.web_port, reload=settings.is_development)
