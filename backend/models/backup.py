"""
EcoProRenov - Requêtes de sauvegarde (export webhook)
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class BackupRequest(BaseModel):
    """Corps des actions export / test. URL absente = URL enregistrée pour l'organisation."""
    model_config = ConfigDict(populate_by_name=True)

    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")
    chunk_size: Optional[int] = Field(default=None, alias="chunkSize")
