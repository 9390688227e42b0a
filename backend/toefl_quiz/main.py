import asyncio
import contextlib
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .cleanup import cleanup_watcher
from .db import Base, SessionLocal, engine, ensure_schema
from .errors import QuizServiceError, RateLimited
from .rate_limit import RateLimiter
from .routers import auth, health, quizzes
from .settings import settings

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="TOEFL Quiz API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(quizzes.router)

# The limiter lives for the whole process; handlers reach it through app.state
app.state.rate_limiter = RateLimiter()
app.state.background_tasks = []


@app.exception_handler(QuizServiceError)
async def quiz_error_handler(request: Request, exc: QuizServiceError):
	headers = None
	if isinstance(exc, RateLimited):
		headers = {
			"X-RateLimit-Remaining": "0",
			"X-RateLimit-Reset": str(int(exc.reset_at * 1000)),
		}
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
	details = [
		{"loc": ".".join(str(part) for part in err.get("loc", ())), "msg": err.get("msg", "")}
		for err in exc.errors()
	]
	return JSONResponse(
		status_code=400,
		content={"error": "validation_error", "message": "Validation error", "details": details},
	)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
	codes = {401: "unauthorized", 403: "forbidden", 404: "not_found", 409: "conflict"}
	return JSONResponse(
		status_code=exc.status_code,
		content={"error": codes.get(exc.status_code, "http_error"), "message": exc.detail},
		headers=getattr(exc, "headers", None),
	)


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
	db = SessionLocal()
	try:
		auth.ensure_seed_user(db)
	finally:
		db.close()
	limiter: RateLimiter = app.state.rate_limiter
	tasks = [asyncio.create_task(limiter.run_sweeper(settings.rate_limit_sweep_seconds))]
	if settings.cleanup_interval_seconds > 0:
		tasks.append(asyncio.create_task(cleanup_watcher(SessionLocal, settings.cleanup_interval_seconds)))
	app.state.background_tasks = tasks


@app.on_event("shutdown")
async def shutdown_event():
	tasks = app.state.background_tasks
	for task in tasks:
		task.cancel()
	for task in tasks:
		with contextlib.suppress(asyncio.CancelledError):
			await task
	app.state.background_tasks = []
