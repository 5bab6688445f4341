from fastapi import APIRouter, Depends

from fusion.deps import get_store
from fusion.elements.store import ElementStore
from fusion.graph import service
from fusion.graph.schema import GraphResponse

router = APIRouter(prefix="/graph", tags=["graph"])


@router.get("", response_model=GraphResponse)
async def get_graph(store: ElementStore = Depends(get_store)):
    return await service.build_graph(store)
