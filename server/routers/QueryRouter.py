from fastapi import APIRouter, HTTPException, Request

from server.models.requests import SearchRequest, SemanticSearchRequest
from server.models.responses import ErrorResponse, SearchResponse, SemanticSearchResponse
from shared.models.book import BookDetail

router = APIRouter(
    tags=["query"],
    responses={
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.post("/search")
async def search_books(request: Request, body: SearchRequest) -> SearchResponse:
    """Catalogue search (full-text or substring), most recently updated first.
    The first page of a text query may end with semantically close books.

    Args:
        request (Request): FastAPI request (provides app.state.query_service).
        body (SearchRequest): Query, tag/author filters and pagination.

    Returns:
        SearchResponse: One page of books and the total match count.
    """
    query_service = request.app.state.query_service
    result = await query_service.do_search(
        query=body.query,
        tags=body.tags,
        author=body.author,
        page=body.page,
        page_size=body.page_size,
    )
    return SearchResponse(books=result.books, total=result.total)


@router.post("/search/semantic", responses={502: {"model": ErrorResponse}})
async def semantic_search_books(request: Request, body: SemanticSearchRequest) -> SemanticSearchResponse:
    """Books whose passages are semantically closest to the query."""
    query_service = request.app.state.query_service
    books = await query_service.do_semantic_search(
        query=body.query,
        tags=body.tags,
        author=body.author,
        limit=body.limit,
    )
    return SemanticSearchResponse(books=books)


@router.get("/tags")
async def list_tags(request: Request) -> list[str]:
    return await request.app.state.query_service.do_list_tags()


@router.get("/authors")
async def list_authors(request: Request) -> list[str]:
    return await request.app.state.query_service.do_list_authors()


@router.get("/books/{reference}", responses={404: {"model": ErrorResponse}})
async def get_book(request: Request, reference: str) -> BookDetail:
    detail = await request.app.state.query_service.do_get_book(reference)
    if detail is None:
        raise HTTPException(status_code=404, detail=f"Book '{reference}' not found")
    return detail
