from urllib.parse import unquote

import requests
from fastapi import APIRouter, HTTPException, Query, Request, Response

from tripplanner.core.places_service import PlacesService

router = APIRouter(prefix="/places", tags=["places"])


def get_places(request: Request) -> PlacesService:
    enricher = request.app.state.manager.enricher
    if enricher is None:
        raise HTTPException(status_code=503, detail="Places lookup is not configured")
    return enricher.places


@router.get("/photo")
def get_place_photo(
    request: Request,
    ref: str = Query(..., description="Google Places photo reference"),
    w: int = Query(400, ge=1, le=1600, description="Maximum width in pixels"),
) -> Response:
    """
    Proxy endpoint for Google Places photos.
    Fetches the photo from Google and returns it to the client.
    """
    places = get_places(request)
    photo_url = places.get_place_photo_url(unquote(ref), max_width=w)
    if not photo_url:
        raise HTTPException(status_code=400, detail="Invalid photo reference")

    try:
        response = requests.get(photo_url, timeout=10)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch photo: {str(e)}")

    return Response(
        content=response.content,
        media_type=response.headers.get("Content-Type", "image/jpeg"),
        headers={"Cache-Control": "public, max-age=31536000"},
    )
