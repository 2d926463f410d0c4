from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.config import settings


class CamelModel(BaseModel):
    """JSON uses camelCase (fullName, isRegOpen); Python uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def api_url(path: str) -> str:
    return f"{settings.API_PREFIX}{path}"
