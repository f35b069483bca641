from typing import Awaitable, Callable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from erblocks.api.serializers import serialize
from erblocks.db.session import get_sessionmaker
from erblocks.directives import (
    ParserOptions,
    build_directive,
    extract_entities,
    parse_with_diagnostics,
    validate_directives,
)
from erblocks.graph import (
    UNSET,
    BlockStore,
    ConflictError,
    NotFoundError,
    ValidationError,
    ancestry_path,
    count_edges_by_parent,
    create_edge,
    descendant_set,
    get_edge,
    list_edges_by_child,
    list_edges_by_parent,
    remove_all_edges_from_parent,
    remove_edge,
    run_in_transaction,
    update_edge,
)
from erblocks.reconcile import drift_report
from erblocks.schemas import (
    BuildDirectiveRequest,
    CreateBlockRequest,
    SourceRequest,
    UpdateBlockRequest,
)

router = APIRouter()

T = TypeVar("T")


async def _run(
    sessionmaker: async_sessionmaker,
    operation: Callable[[BlockStore], Awaitable[T]],
) -> T:
    """Run an engine operation and map its errors onto HTTP."""
    try:
        return await run_in_transaction(sessionmaker, operation)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# ============================
# BLOCKS
# ============================

@router.post("/diagrams/{diagram_id}/blocks", status_code=status.HTTP_201_CREATED)
async def create_block(
    diagram_id: str,
    request: CreateBlockRequest,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    edge = await _run(
        sessionmaker,
        lambda store: create_edge(
            store,
            diagram_id,
            request.parent_entity_key,
            request.child_diagram_id,
            label=request.label,
            created_by=request.created_by,
        ),
    )
    return serialize(edge)


@router.get("/diagrams/{diagram_id}/blocks")
async def list_blocks(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    edges = await _run(sessionmaker, lambda store: list_edges_by_parent(store, diagram_id))
    return serialize(edges)


@router.delete("/diagrams/{diagram_id}/blocks")
async def delete_all_blocks(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    deleted = await _run(
        sessionmaker, lambda store: remove_all_edges_from_parent(store, diagram_id)
    )
    return {"deleted": deleted}


@router.get("/diagrams/{diagram_id}/blocks/count")
async def count_blocks(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    count = await _run(sessionmaker, lambda store: count_edges_by_parent(store, diagram_id))
    return {"count": count}


@router.get("/diagrams/{diagram_id}/blocks/{block_id}")
async def get_block(
    diagram_id: str,
    block_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    edge = await _run(sessionmaker, lambda store: get_edge(store, diagram_id, block_id))
    return serialize(edge)


@router.patch("/diagrams/{diagram_id}/blocks/{block_id}")
async def update_block(
    diagram_id: str,
    block_id: str,
    request: UpdateBlockRequest,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    supplied = request.model_fields_set
    child_id = request.child_diagram_id if "child_diagram_id" in supplied else UNSET
    label = request.label if "label" in supplied else UNSET

    # child_diagram_id cannot be cleared
    if child_id is None:
        child_id = UNSET

    edge = await _run(
        sessionmaker,
        lambda store: update_edge(store, diagram_id, block_id, child_id=child_id, label=label),
    )
    return serialize(edge)


@router.delete("/diagrams/{diagram_id}/blocks/{block_id}")
async def delete_block(
    diagram_id: str,
    block_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    result = await _run(sessionmaker, lambda store: remove_edge(store, diagram_id, block_id))
    return serialize(result)


# ============================
# HIERARCHY
# ============================

@router.get("/diagrams/{diagram_id}/parents")
async def list_parent_blocks(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    edges = await _run(sessionmaker, lambda store: list_edges_by_child(store, diagram_id))
    return serialize(edges)


@router.get("/diagrams/{diagram_id}/ancestry")
async def get_ancestry(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    """One root-first breadcrumb path; a diagram with several parents has others."""
    return await _run(sessionmaker, lambda store: ancestry_path(store, diagram_id))


@router.get("/diagrams/{diagram_id}/descendants")
async def get_descendants(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    descendants = await _run(sessionmaker, lambda store: descendant_set(store, diagram_id))
    return serialize(descendants)


@router.get("/diagrams/{diagram_id}/drift")
async def get_drift(
    diagram_id: str,
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
):
    report = await _run(sessionmaker, lambda store: drift_report(store, diagram_id))
    return serialize(report)


# ============================
# DIRECTIVES (no persistence)
# ============================

@router.post("/directives/parse")
def parse_source(request: SourceRequest):
    result = parse_with_diagnostics(
        request.source,
        ParserOptions(
            strip_directives=request.strip_directives,
            collect_errors=request.collect_errors,
        ),
    )
    return serialize(result)


@router.post("/directives/entities")
def entities(request: SourceRequest):
    return serialize(extract_entities(request.source))


@router.post("/directives/validate")
def validate_source(request: SourceRequest):
    errors = validate_directives(request.source)
    return {"valid": not errors, "errors": serialize(errors)}


@router.post("/directives/build")
def build(request: BuildDirectiveRequest):
    try:
        directive = build_directive(request.entity_key, request.child_diagram_id, request.label)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"directive": directive}
