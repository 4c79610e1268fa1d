from ollama_bridge.utils.catalog import ModelCatalog


def match_alias(alias: str, registry) -> str:
    """Exact match first, then the first id ending with the alias, else the alias itself.

    Never fails: an unknown alias goes to the provider untouched and is rejected there.
    """
    for model_id in registry:
        if model_id == alias:
            return model_id
    for model_id in registry:
        if model_id.endswith(alias):
            return model_id
    return alias


class ModelResolver:
    def __init__(self, catalog: ModelCatalog):
        self.catalog = catalog

    async def resolve(self, alias: str) -> str:
        registry = await self.catalog.registry()
        return match_alias(alias, registry)
