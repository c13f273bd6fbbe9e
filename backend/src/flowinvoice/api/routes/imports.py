"""
Bulk import endpoint.

Accepts the invoice export JSON document and imports every invoice in it.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from flowinvoice.api.dependencies import get_import_service
from flowinvoice.api.schemas import ImportResultResponse
from flowinvoice.services.importer import ImportService
from flowinvoice.services.records import ImportRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/import", tags=["import"])


@router.post(
    "/json",
    response_model=ImportResultResponse,
    responses={
        400: {"description": "Empty document, or no invoice could be imported"},
        422: {"description": "Validation error"},
    },
)
async def import_json(
    request: ImportRequest,
    service: Annotated[ImportService, Depends(get_import_service)],
):
    """
    Import invoices from a bulk JSON document.

    Duplicates are skipped and inconsistent invoices are stored but flagged.
    Responds 400 with the import summary when nothing was imported
    successfully.
    """
    if not request.invoices:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The JSON document is invalid or contains no invoices.",
        )

    logger.info(f"Import request with {len(request.invoices)} invoices")
    result = await service.import_batch(request.invoices)
    response = ImportResultResponse.model_validate(result)

    if result.imported_successfully == 0:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=response.model_dump(mode="json"),
        )
    return response
