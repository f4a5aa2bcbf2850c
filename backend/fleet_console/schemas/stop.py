from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

# Fields that decide whether a stop is still the persisted stop it was loaded as
IDENTITY_FIELDS = ("name", "latitude", "longitude")


class Stop(BaseModel):
    id: int | None = None
    name: str = ""
    latitude: float = 0.0
    longitude: float = 0.0


class EditableStop(Stop):
    """A stop row in an editing buffer (route or trip)."""

    travel_time_from_previous_stop_min: int = 0
    travel_distance_from_previous_stop: float = 0.0  # km
    dwell_time_minutes: int = 0
    approx_arrival_time: str | None = None  # HH:MM:SS, trips only
    approx_departure_time: str | None = None

    # Set when name/lat/lon is typed by hand; not part of dumps or snapshots
    _identity_edited: bool = PrivateAttr(default=False)

    @property
    def identity_edited(self) -> bool:
        return self._identity_edited

    def mark_identity_edited(self, edited: bool = True) -> None:
        self._identity_edited = edited

    def identity(self) -> tuple[str, float, float]:
        return (self.name, self.latitude, self.longitude)


class StopSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    latitude: float
    longitude: float


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    total_pages: int = Field(default=0, alias="totalPages")
    page: int | None = None
    limit: int | None = None


class StopSearchPage(BaseModel):
    stops: list[StopSuggestion] = []
    pagination: Pagination = Pagination()


class StopPayload(BaseModel):
    """One stop of an outbound route/trip update.

    Either a ``stop_id`` reference or a full ``name``/``latitude``/``longitude``
    definition; timing and travel fields ride along in both shapes.
    """

    stop_id: int | None = None
    name: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    travel_time_from_previous_stop_min: int = 0
    travel_distance_from_previous_stop: float = 0.0
    dwell_time_minutes: int | None = None
    approx_arrival_time: str | None = None
    approx_departure_time: str | None = None
