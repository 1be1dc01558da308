"""
Pydantic schemas for API request/response models
Response structures for the offline cache service endpoints
"""
from pydantic import BaseModel
from typing import Dict, List, Optional


# ===== LIFECYCLE SCHEMAS =====

class ControllerInfo(BaseModel):
    """A controller instance as seen by the registration"""
    version: str
    state: str
    skip_waiting_requested: bool


class RegistrationState(BaseModel):
    """Active/waiting controllers and the clients they control"""
    active: Optional[ControllerInfo] = None
    waiting: Optional[ControllerInfo] = None
    clients: Dict[str, Optional[str]] = {}


class RegisterResult(BaseModel):
    """Outcome of installing a new controller"""
    version: str
    state: str
    activated: bool


class ControllerMessage(BaseModel):
    """Message posted by a page (e.g. {"type": "SKIP_WAITING"})"""
    type: str


class MessageResult(BaseModel):
    """Outcome of delivering a page message"""
    delivered: bool
    activated: bool


# ===== CACHE SCHEMAS =====

class EvictionResult(BaseModel):
    """Outcome of an API cache expiry sweep"""
    cache: str
    removed: int


class CacheStats(BaseModel):
    """Controller statistics"""
    version: str
    state: str
    requests: int
    passed_through: int
    cache_hits: int
    cache_misses: int
    network_failures: int
    offline_fallbacks: int
    refreshes: int
    refresh_failures: int
    hit_rate_percent: float
    strategies: Dict[str, int]
    caches: Dict[str, int]
    current_caches: List[str]
    refreshing_count: int
