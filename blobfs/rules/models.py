from pydantic import BaseModel, ConfigDict, Field


class CacheRules(BaseModel):
    enabled: bool = False
    max_entries: int = Field(default=1024, ge=1)
    max_entry_bytes: int = Field(default=1024 * 1024, ge=0)
    ttl_seconds: float | None = Field(default=None, gt=0)
    # Side file; defaults to {root}/.{collection}.cache.json when unset
    path: str | None = None
    persist: bool = True


class StoreRules(BaseModel):
    model_config = ConfigDict(extra="forbid")

    root: str
    collection: str
    chunk_size: int = Field(default=64 * 1024, ge=1)
    cache: CacheRules = Field(default_factory=CacheRules)
