"""
Visualization API Routes
Compile workflow documents into positioned canvas graphs
"""
from fastapi import APIRouter, HTTPException
from workflow_canvas.schemas.api_models import (
    StructuralErrorResponse,
    SummaryRequest,
    SummaryResponse,
    WorkflowGraphRequest,
    WorkflowGraphResponse
)
from workflow_canvas.services.visualization_service import get_visualization_service
from workflow_canvas.validator.errors import DocumentParseException, StructuralValidationException
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/visualize", tags=["Visualization"])

# Get service instance
visualization_service = get_visualization_service()


@router.post(
    "/graph",
    response_model=WorkflowGraphResponse,
    responses={
        400: {"description": "Document text could not be parsed"},
        422: {"model": StructuralErrorResponse, "description": "Document is structurally invalid"}
    }
)
async def generate_workflow_graph(request: WorkflowGraphRequest) -> WorkflowGraphResponse:
    """
    Compile and lay out a workflow document

    Returns positioned nodes and classified edges for the canvas
    """
    try:
        return await visualization_service.generate_graph(request)
    except DocumentParseException as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "Parse Error", "message": str(e)}
        )
    except StructuralValidationException as e:
        raise HTTPException(
            status_code=422,
            detail=StructuralErrorResponse(
                error="Structural Error",
                message=str(e),
                errors=[error.to_dict() for error in e.result.errors]
            ).model_dump()
        )


@router.post("/summary", response_model=SummaryResponse)
async def summarize_entity(request: SummaryRequest) -> SummaryResponse:
    """
    Summary lines for one step, module or trigger

    Sensitive values are redacted and lines are truncated
    """
    return await visualization_service.summarize(request)
