"""Assistant API routes: streamed replies and structured answers."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from storefront_assistant.agent.llm_provider import ProviderError, ProviderNotConfiguredError
from storefront_assistant.agent.streaming import StreamingAssistant, StreamTimeoutError
from storefront_assistant.agent.structured_assistant import CatalogUnavailableError, StructuredAssistant
from storefront_assistant.analytics.error_tracker import error_tracker
from storefront_assistant.analytics.logger import logger
from storefront_assistant.api.dependencies import (
    get_catalog,
    get_streaming_assistant,
    get_structured_assistant,
)
from storefront_assistant.api.schemas import AskRequest, AskResponse, ProductStub, StreamRequest
from storefront_assistant.services.catalog_service import CatalogService

router = APIRouter(prefix="/assistant", tags=["assistant"])

SERVICE_UNAVAILABLE_MESSAGE = "Az AI asszisztens jelenleg nem elérhető."
GENERIC_ERROR_MESSAGE = "Elnézést, hiba történt. Próbáld újra!"
TIMEOUT_MESSAGE = "Az AI asszisztens nem válaszolt időben. Próbáld újra!"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


@router.post("/stream")
async def stream_reply(
    request: StreamRequest,
    assistant: StreamingAssistant = Depends(get_streaming_assistant),
    catalog: CatalogService = Depends(get_catalog),
):
    """Stream the assistant's reply as raw UTF-8 text fragments."""
    messages = [message.model_dump() for message in request.messages]

    try:
        fragments = await assistant.open_stream(messages, catalog)
    except ProviderNotConfiguredError as e:
        error_tracker.record_error("config_error", str(e), {"endpoint": "stream"})
        return JSONResponse(status_code=503, content={"error": SERVICE_UNAVAILABLE_MESSAGE})
    except StreamTimeoutError as e:
        error_tracker.record_error("timeout", str(e), {"endpoint": "stream"})
        return JSONResponse(status_code=504, content={"error": TIMEOUT_MESSAGE})
    except ProviderError as e:
        error_tracker.record_error("llm_error", str(e), {"endpoint": "stream"})
        logger.error(f"Provider failed before streaming: {e.__cause__ or e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR_MESSAGE})
    except ValueError as e:
        error_tracker.record_error("validation_error", str(e), {"endpoint": "stream"})
        return JSONResponse(status_code=400, content={"error": "Invalid input"})

    return StreamingResponse(
        fragments,
        media_type="text/plain; charset=utf-8",
        headers=STREAM_HEADERS,
    )


@router.post("/ask", response_model=AskResponse, response_model_exclude_none=True)
async def ask(
    request: AskRequest,
    assistant: StructuredAssistant = Depends(get_structured_assistant),
    catalog: CatalogService = Depends(get_catalog),
):
    """Answer one shopping question with product references and suggestions."""
    try:
        result = await assistant.ask(request.question, catalog)
    except ProviderNotConfiguredError as e:
        error_tracker.record_error("config_error", str(e), {"endpoint": "ask"})
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": SERVICE_UNAVAILABLE_MESSAGE},
        )
    except ProviderError as e:
        error_tracker.record_error("llm_error", str(e), {"endpoint": "ask"})
        logger.error(f"Structured answer failed: {e.__cause__ or e}", exc_info=True)
        return AskResponse(success=False, error=GENERIC_ERROR_MESSAGE)
    except CatalogUnavailableError as e:
        error_tracker.record_error("catalog_error", str(e), {"endpoint": "ask"})
        logger.error(f"Product grounding failed: {e.__cause__ or e}", exc_info=True)
        return AskResponse(success=False, error=GENERIC_ERROR_MESSAGE)
    except Exception as e:
        error_tracker.record_error("internal_error", f"{type(e).__name__}: {e}", {"endpoint": "ask"})
        logger.error(f"Unexpected error answering question: {e}", exc_info=True)
        return AskResponse(success=False, error=GENERIC_ERROR_MESSAGE)

    return AskResponse(
        success=True,
        answer=result.answer,
        products=[
            ProductStub(
                id=product.id,
                name=product.name,
                slug=product.slug,
                price=product.effective_price,
                image=product.image,
            )
            for product in result.products
        ] or None,
        suggestions=result.suggestions or None,
    )
