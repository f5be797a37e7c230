import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hostmonitor.config import settings
from hostmonitor.api.routes import system

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
  title='Host Monitor',
  version='0.1.0',
  description='Reports memory, disk and CPU utilization of the host it runs on.'
)

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
  logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
  return JSONResponse(
    status_code=500,
    content={'success': False, 'error': str(exc)},
  )

# Include Routers
app.include_router(system.router, tags=['System'])

@app.on_event('startup')
async def startup_event() -> None:
  logger.info('System monitor running on %s:%s', settings.host, settings.port)
  logger.info('System resources available at: http://localhost:%s/system', settings.port)
