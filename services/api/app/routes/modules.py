"""Country module configuration (read side).

GET /v1/modules/{country_code} - Enabled/disabled request modules
"""

from fastapi import APIRouter, Path

from app.schemas import ModuleConfigOut
from app.services.module_config import get_module_config_store

router = APIRouter()


@router.get("/{country_code}", response_model=ModuleConfigOut)
async def get_country_modules(
    country_code: str = Path(min_length=2, max_length=2, examples=["LK", "US", "IN"]),
) -> ModuleConfigOut:
    config = await get_module_config_store().get(country_code)
    return ModuleConfigOut(**config.to_dict())
