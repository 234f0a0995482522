from .fastapi_router import router

__all__ = ["router"]
