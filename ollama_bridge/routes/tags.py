from fastapi import APIRouter, Depends

from ollama_bridge.utils.catalog import ModelCatalog, get_catalog

router = APIRouter(prefix="/api", tags=["models"])


@router.get('/tags')
async def tags(catalog: ModelCatalog = Depends(get_catalog)):
    entries = await catalog.list()
    return {'models': [entry.to_tag() for entry in entries]}
