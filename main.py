import math
import os
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Union
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger
from dotenv import load_dotenv
from prometheus_client import Counter, Histogram, start_http_server
from models import PRODUCTS
from schemas import ErrorResponse, HealthResponse, IndexResponse, ProductQueryResponse

# Chargement des variables d'environnement
load_dotenv()

SERVICE_NAME = "products-api"
ENVIRONMENT = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "logs.json")

NOT_FOUND_MESSAGE = "path not found"
# Label Prometheus des requêtes sans route
UNMATCHED_ENDPOINT = "unmatched"

# Config logging JSON (fichier) + console lisible
logger.remove()
logger.add(
    sink=LOG_FILE,
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level=LOG_LEVEL,
    serialize=True,
    rotation="1 day",
)
logger.add(sys.stderr, level=LOG_LEVEL)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)


class UTF8JSONResponse(JSONResponse):
    """JSON response that always announces its charset."""

    media_type = "application/json; charset=utf-8"


# Pas de /docs ni /openapi.json : la table de routage se limite aux trois endpoints
app = FastAPI(
    title="Products API",
    default_response_class=UTF8JSONResponse,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    redirect_slashes=False,
)


def endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return route.path if route is not None else UNMATCHED_ENDPOINT


# Middleware pour logger les requests avec correlation ID
@app.middleware("http")
async def log_requests(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        # Le chemin est un argument, jamais le template : il peut contenir des accolades
        logger.bind(method=request.method, url=str(request.url)).info(
            "Request: {} {}", request.method, request.url.path
        )

        response = await call_next(request)

        latency = time.time() - start_time
        endpoint = endpoint_label(request)

        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint
        ).observe(latency)

        logger.bind(status=response.status_code, latency=latency).info(
            "Response status: {}", response.status_code
        )

        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["X-Trace-ID"] = trace_id
        return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Chemin ou méthode inconnus : toujours un 404, jamais de 405
    if exc.status_code in (404, 405):
        logger.warning("No route for {} {}", request.method, request.url.path)
        ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint_label(request), error_type="not_found").inc()
        return UTF8JSONResponse(status_code=404, content=ErrorResponse(error=NOT_FOUND_MESSAGE).model_dump())
    return UTF8JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=str(exc.detail)).model_dump())


def require_bare_target(request: Request):
    """Static routes only match when the request target carries no query string."""
    if request.url.query:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)


def coerce_number(raw: Optional[str], default: float) -> float:
    """
    Convert a query-string value to a float.

    Missing, empty, NaN or otherwise non-numeric values fall back to
    ``default`` instead of raising.
    """
    if raw is None:
        return default
    text = raw.strip()
    if not text or "_" in text:
        return default
    try:
        value = float(text)
    except ValueError:
        logger.debug("Non-numeric query value {!r}, using {}", raw, default)
        return default
    if math.isnan(value):
        return default
    return value


def filter_by_price(products, min_price: float, max_price: float):
    return [p for p in products if min_price <= p.price <= max_price]


def json_number(value: float) -> Optional[Union[int, float]]:
    # JSON n'a pas d'Infinity : borne absente -> null
    if math.isinf(value):
        return None
    return int(value) if value.is_integer() else value


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@app.get("/", response_model=IndexResponse, dependencies=[Depends(require_bare_target)])
async def index():
    return {
        "message": "Welcome to the Products API",
        "endpoints": {
            "health": "/api/health",
            "products": "/api/products?min=5000&max=20000",
        },
    }


@app.get("/api/health", response_model=HealthResponse, dependencies=[Depends(require_bare_target)])
async def health():
    """Health check endpoint"""
    return {"status": "OK", "timestamp": utc_timestamp()}


# Préfixe : /api/products, /api/products/..., /api/productsXYZ
@app.get("/api/products{suffix:path}", response_model=ProductQueryResponse)
async def get_products(
    min_param: Optional[str] = Query(None, alias="min"),
    max_param: Optional[str] = Query(None, alias="max"),
):
    min_price = coerce_number(min_param, 0.0)
    max_price = coerce_number(max_param, math.inf)
    matched = filter_by_price(PRODUCTS, min_price, max_price)
    logger.info("Filtering products in [{}, {}]: {} match(es)", min_price, max_price, len(matched))
    return ProductQueryResponse(
        min_price=json_number(min_price),
        max_price=json_number(max_price),
        total_products=len(PRODUCTS),
        matched_count=len(matched),
        matched_products=[p.model_dump() for p in matched],
    )


if __name__ == "__main__":
    port = int(os.getenv("PORT", 3000))
    host = os.getenv("HOST", "0.0.0.0")
    metrics_port = os.getenv("METRICS_PORT")
    if metrics_port:
        start_http_server(int(metrics_port))
        logger.info(f"Prometheus metrics exposed on port {metrics_port}")
    logger.info(f"Starting Products API on port {port}")
    logger.info(f"Environment: {ENVIRONMENT}")
    import uvicorn
    uvicorn.run(app, host=host, port=port)
