"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - Models Package                                                ║
║                                                                              ║
║  from models import ProjectStatus, CatalogProduct, StartChantierInput, ...   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Projet
from .project import (
    ProjectStatus,
    ProjectStatusUpdate,
)

# Chantier
from .chantier import (
    LegacyChantierStatus,
    TravauxChoice,
    AdditionalCost,
    StartChantierInput,
    ChantierStatusUpdate,
    RentabilityFieldsUpdate,
)

# Catalogue produit
from .product import (
    PARAM_FIELD_TYPES,
    ParamField,
    TextParamField,
    TextAreaParamField,
    NumberParamField,
    SelectParamField,
    CheckboxParamField,
    KwhCumacValue,
    ProductCeeConfig,
    CatalogProduct,
    Delegate,
    ParamsValidationRequest,
    normalize_schema_fields,
)

# Devis (PDF)
from .quote import (
    QuotePdfItem,
    QuotePdfClient,
    QuotePdfBuilding,
    QuotePdfCompany,
    QuotePdfNotes,
    QuotePdfDocument,
)

# Sauvegardes / paramètres
from .backup import BackupRequest
from .settings import OrganizationSettingsUpdate

__all__ = [
    # Projet
    "ProjectStatus",
    "ProjectStatusUpdate",
    # Chantier
    "LegacyChantierStatus",
    "TravauxChoice",
    "AdditionalCost",
    "StartChantierInput",
    "ChantierStatusUpdate",
    "RentabilityFieldsUpdate",
    # Produit
    "PARAM_FIELD_TYPES",
    "ParamField",
    "TextParamField",
    "TextAreaParamField",
    "NumberParamField",
    "SelectParamField",
    "CheckboxParamField",
    "KwhCumacValue",
    "ProductCeeConfig",
    "CatalogProduct",
    "Delegate",
    "ParamsValidationRequest",
    "normalize_schema_fields",
    # Devis
    "QuotePdfItem",
    "QuotePdfClient",
    "QuotePdfBuilding",
    "QuotePdfCompany",
    "QuotePdfNotes",
    "QuotePdfDocument",
    # Divers
    "BackupRequest",
    "OrganizationSettingsUpdate",
]
