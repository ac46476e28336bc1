"""
FastAPI application and endpoints for the Deduplication Retention Simulator
Includes CORS, request size limits, request IDs and structured error handling
"""

# Standard library imports
import asyncio
import csv
import io
import traceback
from typing import Dict, Any, Optional, List

# Third-party imports
import numpy as np
from fastapi import FastAPI, HTTPException, Request, status, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.exceptions import RequestValidationError

# Local application imports
from dedupsim.config import get_settings
from dedupsim.dictionary import get_tier_lookup
from dedupsim.exceptions import SimulationError, ParameterValidationError
from dedupsim.models import (
    CompareRequest,
    CompareResponse,
    DictionarySizing,
    DictionaryTier,
    DictionaryUsageReport,
    DictionaryUsageRequest,
    SimulationParameters,
    SimulationRequest,
    SimulationResponse,
    ValidationResponse,
)
from dedupsim.simulation import RetentionSimulator, SERIES_FIELDS
from dedupsim.types import SeriesDict, ValidationSummaryDict
from dedupsim.utils.cache import get_cache, hash_parameters
from dedupsim.utils.logging_config import (
    setup_logging,
    get_logger,
    set_request_id,
)
from dedupsim.utils.result_store import get_result_store
from dedupsim.validation import compute_cutoffs, validate_parameters

logger = get_logger(__name__)

settings = get_settings()

setup_logging(
    level=settings.log_level,
    json_format=settings.log_format_json,
    log_file=settings.log_file,
    max_bytes=settings.log_max_bytes,
    backup_count=settings.log_backup_count,
)

app = FastAPI(
    title="Deduplication Retention Simulator API",
    version="1.0.0",
    description="Simulates backup retention, deduplication and dictionary sizing",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

MAX_REQUEST_SIZE = settings.max_request_size
SIMULATION_TIMEOUT = settings.simulation_timeout


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Tag every request with an ID, reusing the caller's X-Request-ID"""
    request_id = set_request_id(request.headers.get("x-request-id"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def request_size_middleware(request: Request, call_next):
    """Reject bodies larger than MAX_REQUEST_SIZE"""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        size = int(content_length)
        logger.warning(f"Rejected request of {size} bytes")
        return JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content={
                "code": "http_413",
                "message": f"Request size ({size} bytes) exceeds maximum ({MAX_REQUEST_SIZE} bytes)",
                "details": {"status_code": 413},
            },
        )
    return await call_next(request)


def add_debug_info(error_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the current traceback when running in debug mode"""
    if settings.debug:
        error_dict.setdefault("details", {})
        error_dict["details"]["traceback"] = traceback.format_exc()
    return error_dict


@app.exception_handler(ParameterValidationError)
async def parameter_error_handler(request: Request, exc: ParameterValidationError):
    """Invalid simulation parameters are the caller's fault"""
    logger.warning(f"Invalid parameters: {exc.fields}", extra={"code": exc.code})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=exc.to_dict(),
    )


@app.exception_handler(SimulationError)
async def simulation_error_handler(request: Request, exc: SimulationError):
    """Handle simulation errors with structured format"""
    logger.error(f"Simulation error: {exc.message}", extra={"code": exc.code})
    error_dict = add_debug_info(exc.to_dict())
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_dict,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with structured format"""
    logger.warning(f"Validation error: {exc.errors()}")

    error_messages = []
    for error in exc.errors():
        loc = " -> ".join(str(x) for x in error.get("loc", []))
        msg = error.get("msg", "Validation error")
        error_messages.append(f"{loc}: {msg}")

    error_response: Dict[str, Any] = {
        "code": "validation_error",
        "message": "; ".join(error_messages),
        "details": {
            "errors": [
                {"loc": list(e.get("loc", [])), "msg": e.get("msg"), "type": e.get("type")}
                for e in exc.errors()
            ],
        },
    }

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=add_debug_info(error_response),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with structured format"""
    logger.warning(f"HTTP exception: {exc.status_code} - {exc.detail}")

    error_response: Dict[str, Any] = {
        "code": f"http_{exc.status_code}",
        "message": exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        "details": {
            "status_code": exc.status_code,
        },
    }

    return JSONResponse(status_code=exc.status_code, content=error_response)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with structured format"""
    logger.exception("Unhandled exception", exc_info=exc)

    error_response: Dict[str, Any] = {
        "code": "internal_error",
        "message": str(exc) if settings.debug else "An internal error occurred",
        "details": {
            "exception_type": type(exc).__name__,
        },
    }

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=add_debug_info(error_response),
    )


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    logger.info("Root endpoint accessed")
    return {
        "message": "Deduplication Retention Simulator API",
        "version": "1.0.0",
        "endpoints": {
            "simulate": "/simulate",
            "validate": "/validate",
            "health": "/health",
            "cache_stats": "/cache/stats",
            "export_csv": "/simulate/{id}/export/csv",
            "export_json": "/simulate/{id}/export/json",
            "compare": "/compare",
            "dictionary_tiers": "/dictionary/tiers",
            "dictionary_lookup": "/dictionary/lookup",
            "dictionary_usage": "/dictionary/usage",
        },
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    logger.debug("Health check requested")
    return {"status": "healthy"}


@app.get("/cache/stats")
def cache_stats():
    """Get simulation cache statistics"""
    logger.debug("Cache stats requested")
    return get_cache().get_stats()


@app.post("/simulate", response_model=SimulationResponse)
async def simulate(request: SimulationRequest):
    """
    Run a retention simulation

    Returns the per-day series, the monthly dictionary sizing series and
    the final summary. Identical parameters are served from the cache.
    """
    params = request.parameters
    logger.info(
        f"Simulation request received: source={params.source_size_tib} TiB, "
        f"days={params.simulation_days}, cloud_delay={params.cloud_delay_days}"
    )

    # Raises ParameterValidationError before any work is done
    simulator = RetentionSimulator(params, verbose=request.verbose)

    try:
        cache = get_cache()
        params_hash = hash_parameters(params)
        result = cache.get(params_hash)
        cached = result is not None

        if result is None:
            try:
                result = await asyncio.wait_for(
                    asyncio.to_thread(simulator.run),
                    timeout=SIMULATION_TIMEOUT,
                )
            except asyncio.TimeoutError:
                raise HTTPException(
                    status_code=status.HTTP_408_REQUEST_TIMEOUT,
                    detail=(
                        f"Simulation of {params.simulation_days} days exceeded timeout of "
                        f"{SIMULATION_TIMEOUT} seconds. Consider a shorter horizon."
                    ),
                )
            cache.put(params_hash, result)

        logger.info(
            f"Simulation completed: {len(result.days)} days, "
            f"tier status {result.summary.tier_status.value}, cached={cached}"
        )

        result_id = get_result_store().store(result)
        logger.debug(f"Stored simulation result with ID: {result_id}")

        return SimulationResponse(
            success=True,
            result_id=result_id,
            cached=cached,
            result=result,
            warnings=simulator.warnings,
        )

    except HTTPException:
        raise
    except SimulationError:
        raise
    except Exception as e:
        logger.exception("Unexpected error in simulation")
        raise SimulationError(
            code="internal_error",
            message=f"Unexpected error during simulation: {str(e)}",
            details={"exception_type": type(e).__name__},
        ) from e


@app.post("/validate", response_model=ValidationResponse)
def validate_parameters_endpoint(params: SimulationParameters):
    """
    Validate simulation parameters without running a simulation

    Returns structured validation results with errors and warnings.
    """
    logger.info("Validation request received")

    result = validate_parameters(params)

    summary: Optional[ValidationSummaryDict] = None
    if result.valid:
        summary = {
            "valid": True,
            "simulation_days": params.simulation_days,
            "backups": params.simulation_days,
            "retention_cutoffs": compute_cutoffs(params).model_dump(),
        }
        logger.info(f"Validation passed: {summary}")
    else:
        logger.warning(f"Validation failed: {len(result.errors)} errors found")

    return ValidationResponse(
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
        summary=summary,
    )


def _generate_csv(data: SeriesDict) -> str:
    """Generate CSV string with one row per simulated day"""
    days = data["day"]
    series = data["series"]

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    fields = list(series.keys())
    writer.writerow(["day"] + fields)
    for i, day in enumerate(days):
        writer.writerow([day] + [series[field][i] for field in fields])

    return output.getvalue().rstrip("\r\n")


def _get_stored_or_404(result_id: str):
    stored = get_result_store().get(result_id)
    if stored is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Simulation result not found or expired: {result_id}",
        )
    return stored


@app.get("/simulate/{result_id}/export/csv")
def export_csv(
    result_id: str,
    field: Optional[List[str]] = Query(None, description="Filter by daily field names"),
):
    """Export per-day simulation results as CSV"""
    logger.info(f"CSV export requested for result: {result_id}")

    stored = _get_stored_or_404(result_id)
    csv_content = _generate_csv(stored.to_series(field))

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=retention_{result_id}.csv"},
    )


@app.get("/simulate/{result_id}/export/json")
def export_json(
    result_id: str,
    field: Optional[List[str]] = Query(None, description="Filter by daily field names"),
):
    """Export per-day simulation results as JSON"""
    logger.info(f"JSON export requested for result: {result_id}")

    stored = _get_stored_or_404(result_id)
    return JSONResponse(content=stored.to_series(field))


@app.post("/compare", response_model=CompareResponse)
async def compare_simulations(request: CompareRequest):
    """Compare the per-day series of two stored simulations"""
    logger.info(f"Comparison requested: {request.result_id_1} vs {request.result_id_2}")

    stored1 = _get_stored_or_404(request.result_id_1)
    stored2 = _get_stored_or_404(request.result_id_2)

    numeric_fields = list(SERIES_FIELDS) + ["required_keys"]
    if request.series_fields is not None:
        numeric_fields = [f for f in numeric_fields if f in request.series_fields]

    data1 = stored1.to_series(numeric_fields)
    data2 = stored2.to_series(numeric_fields)

    if len(data1["day"]) != len(data2["day"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Results cover different numbers of days",
        )

    differences: Dict[str, Dict[str, float]] = {}
    for field in numeric_fields:
        arr1 = np.array(data1["series"][field], dtype=np.float64)
        arr2 = np.array(data2["series"][field], dtype=np.float64)
        diff = arr2 - arr1
        abs_diff = np.abs(diff)

        with np.errstate(divide="ignore", invalid="ignore"):
            rel_diff = np.where(arr1 != 0, diff / arr1 * 100, np.nan)
        valid_rel = rel_diff[~np.isnan(rel_diff)]

        if len(valid_rel) == 0:
            # Baseline is zero throughout
            mean_rel_diff = 0.0
            max_rel_diff = 0.0
        else:
            mean_rel_diff = float(np.mean(valid_rel))
            max_rel_diff = float(np.max(np.abs(valid_rel)))

        differences[field] = {
            "mean_difference": float(np.mean(diff)),
            "max_difference": float(np.max(abs_diff)),
            "final_difference": float(diff[-1]),
            "mean_relative_difference_percent": mean_rel_diff,
            "max_relative_difference_percent": max_rel_diff,
            "rms_difference": float(np.sqrt(np.mean(diff**2))),
        }

    summary1 = stored1.result.summary
    summary2 = stored2.result.summary
    summary = {
        "fields_compared": len(differences),
        "days": len(data1["day"]),
        "final_tier_1": summary1.final_tier.size_label if summary1.final_tier else None,
        "final_tier_2": summary2.final_tier.size_label if summary2.final_tier else None,
        "tier_changed": summary1.final_tier != summary2.final_tier,
    }

    logger.info(f"Comparison completed: {len(differences)} fields compared")
    return CompareResponse(differences=differences, summary=summary)


@app.get("/dictionary/tiers", response_model=List[DictionaryTier])
def list_dictionary_tiers():
    """List the dictionary sizing table"""
    return get_tier_lookup().tiers


@app.get("/dictionary/lookup", response_model=DictionarySizing)
def lookup_dictionary_tier(
    num_keys: int = Query(..., ge=0, description="Deduplication key count"),
):
    """Resolve a key count to the dictionary tier able to hold it"""
    sizing = get_tier_lookup().resolve(num_keys)
    logger.info(f"Dictionary lookup for {num_keys:,} keys: {sizing.status.value}")
    return sizing


@app.post("/dictionary/usage", response_model=DictionaryUsageReport)
def assess_dictionary_usage(request: DictionaryUsageRequest):
    """Report how full an existing dictionary is"""
    report = get_tier_lookup().assess_usage(
        request.dictionary_size_gib, request.used_keys
    )
    logger.info(
        f"Dictionary usage for {request.dictionary_size_gib} GiB: "
        f"{report.status.value}, percent used {report.percent_used}"
    )
    return report
