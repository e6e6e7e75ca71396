"""Access to the service held by the running application."""

from fastapi import Request

from prospection.search import ProspectionSearchService


def get_service(request: Request) -> ProspectionSearchService:
    """FastAPI dependency returning the application's search service."""
    return request.app.state.service
