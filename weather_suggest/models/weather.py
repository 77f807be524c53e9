"""Weather suggestion result model and unit helpers."""

from typing import Optional

from pydantic import BaseModel

FAHRENHEIT_LOCALES = {"en-US"}


def temperature_unit_for_locale(locale: Optional[str]) -> str:
    """Return the temperature unit key used by the suggestion API.

    Args:
        locale: BCP 47 locale of the client, e.g. "en-US".

    Returns:
        "f" for Fahrenheit locales, otherwise "c".
    """
    return "f" if locale in FAHRENHEIT_LOCALES else "c"


class WeatherSuggestion(BaseModel):
    """Weather result handed to the view renderer."""

    city: Optional[str] = None
    region: Optional[str] = None
    url: str
    icon_id: Optional[int] = None
    request_id: Optional[str] = None
    temperature_unit: str
    temperature: float
    current_conditions: str
    forecast: str
    high: float
    low: float
    suggested_index: int = 0

    @classmethod
    def from_api_response(
        cls, api_data: dict, unit: str, search_string: str
    ) -> "WeatherSuggestion":
        """Create a WeatherSuggestion from one suggestion API item.

        Args:
            api_data: A single item of the API's ``suggestions`` list.
            unit: Temperature unit key, "c" or "f".
            search_string: The query the user typed.

        Returns:
            A populated WeatherSuggestion.
        """
        current = api_data["current_conditions"]
        forecast = api_data["forecast"]
        return cls(
            city=api_data.get("city_name"),
            region=api_data.get("region_code"),
            url=api_data["url"],
            icon_id=current.get("icon_id"),
            request_id=api_data.get("request_id"),
            temperature_unit=unit,
            temperature=current["temperature"][unit],
            current_conditions=current["summary"],
            forecast=forecast["summary"],
            high=forecast["high"][unit],
            low=forecast["low"][unit],
            suggested_index=1 if search_string else 0,
        )
