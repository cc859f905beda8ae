from pydantic import BaseModel


class TrackCard(BaseModel):
    """Row shape returned by every generated read endpoint."""

    id: str
    title: str
    artist: str
    album: str
    image: str
    duration: int
