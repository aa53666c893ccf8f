"""
FastAPI application for the filter engine REST API.

Provides endpoints for:
- Filtering posted records with filter expressions
- Validating filter expressions without running them
- Listing the available operators
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import EngineConfig
from .engine import FilterEngine
from .parser import FilterSyntaxError, describe_operators, parse_filters


# Pydantic models for API requests/responses


class FilterRequest(BaseModel):
    """Request to filter records."""
    records: List[Any] = Field(..., description="Records to filter")
    filters: List[str] = Field(
        default_factory=list,
        description="Filter expressions of the form field:operator:value",
    )
    skip: Optional[int] = Field(None, ge=0, description="Matches to skip")
    limit: Optional[int] = Field(None, ge=0, description="Maximum matches (0 = unbounded)")


class FilterResponse(BaseModel):
    """Response from the filter endpoint."""
    matches: List[Any]
    total_matches: int
    total_records_processed: int
    execution_time_ms: float
    errors: List[str] = Field(default_factory=list)


class ValidateRequest(BaseModel):
    """Request to validate filter expressions."""
    filters: List[str]


class ValidateResponse(BaseModel):
    """Validation result for filter expressions."""
    is_valid: bool
    fields: Dict[str, str] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class OperatorInfo(BaseModel):
    """Description of one operator."""
    name: str
    arguments: str
    description: str


def create_app(config: Optional[EngineConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Optional EngineConfig supplying default skip/limit

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Filter Query Engine API",
        description="REST API for filtering schema-less records",
        version="1.0.0"
    )

    settings = config or EngineConfig()
    engine = FilterEngine(
        stream_buffer=settings.stream_buffer,
        error_buffer=settings.error_buffer,
    )

    # API Routes

    @app.post("/api/filter", response_model=FilterResponse)
    async def filter_records(request: FilterRequest) -> FilterResponse:
        """Filter posted records.

        Args:
            request: Records, filter expressions and pagination

        Returns:
            FilterResponse with matches, stats and any evaluation error

        Raises:
            HTTPException: If a filter expression is invalid
        """
        try:
            query = parse_filters(request.filters)
        except FilterSyntaxError as e:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid filter: {e}"
            )

        skip = settings.skip if request.skip is None else request.skip
        limit = settings.limit if request.limit is None else request.limit

        result = engine.filter(request.records, query, skip, limit)

        errors = []
        if result.error is not None:
            errors.append(str(result.error))

        return FilterResponse(
            matches=result.matches,
            total_matches=result.total_matches,
            total_records_processed=result.total_records_processed,
            execution_time_ms=result.execution_time_ms,
            errors=errors
        )

    @app.post("/api/filters/validate", response_model=ValidateResponse)
    async def validate_filters(request: ValidateRequest) -> ValidateResponse:
        """Validate filter expressions.

        Args:
            request: Filter expressions to check

        Returns:
            ValidateResponse naming each field's predicate, or the errors
        """
        errors = []
        fields: Dict[str, str] = {}

        for expression in request.filters:
            try:
                query = parse_filters([expression])
            except FilterSyntaxError as e:
                errors.append(f"{expression}: {e}")
                continue
            for field_name, predicate in query.items():
                fields[field_name] = predicate.name

        return ValidateResponse(
            is_valid=not errors,
            fields=fields if not errors else {},
            errors=errors
        )

    @app.get("/api/operators", response_model=List[OperatorInfo])
    async def list_operators() -> List[OperatorInfo]:
        """Get all available operators.

        Returns:
            List of operators with their argument shapes
        """
        return [OperatorInfo(**info) for info in describe_operators()]

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Health status
        """
        return {"status": "healthy"}

    return app


# Create the app instance
app = create_app()
