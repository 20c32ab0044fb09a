"""
EcoProRenov - Paramètres d'organisation
"""

from typing import Optional, List
from pydantic import BaseModel


class OrganizationSettingsUpdate(BaseModel):
    prime_bonification: Optional[float] = None
    building_types: Optional[List[str]] = None
    building_usages: Optional[List[str]] = None
    backup_webhook_url: Optional[str] = None
    backup_daily_enabled: Optional[bool] = None
    backup_time: Optional[str] = None
