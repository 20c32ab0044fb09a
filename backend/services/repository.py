"""
EcoProRenov - Repository MongoDB

Point d'accès unique aux collections. Chaque lecture / écriture filtre
sur org_id (isolation multi-organisation); _id n'est jamais renvoyé.

Collections: projects, sites, quotes, invoices, products, delegates,
settings, sessions, memberships, event_log
"""

from typing import Optional, List, Dict, Any

from pymongo import ReturnDocument

from config import now_iso

NO_ID = {"_id": 0}
MAX_LIST = 1000


class ProjectRepository:

    def __init__(self, db):
        self.db = db

    # ---- Projets ----

    async def get_project(self, org_id: str, project_id: str) -> Optional[Dict]:
        return await self.db.projects.find_one({"id": project_id, "org_id": org_id}, NO_ID)

    async def update_project(self, org_id: str, project_id: str, fields: Dict[str, Any]) -> Optional[Dict]:
        return await self.db.projects.find_one_and_update(
            {"id": project_id, "org_id": org_id},
            {"$set": fields},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )

    async def count_projects(self, org_id: str) -> int:
        return await self.db.projects.count_documents({"org_id": org_id})

    async def fetch_projects_page(self, org_id: str, skip: int, limit: int) -> List[Dict]:
        """Page de projets (ordre de création) avec sites, quotes et invoices imbriqués"""
        projects = await self.db.projects.find(
            {"org_id": org_id}, NO_ID
        ).sort([("created_at", 1), ("id", 1)]).skip(skip).limit(limit).to_list(limit)

        if not projects:
            return []

        ids = [p["id"] for p in projects]
        related = {}
        for collection in ("sites", "quotes", "invoices"):
            docs = await self.db[collection].find(
                {"org_id": org_id, "project_id": {"$in": ids}}, NO_ID
            ).to_list(None)
            grouped = {}
            for doc in docs:
                grouped.setdefault(doc["project_id"], []).append(doc)
            related[collection] = grouped

        for project in projects:
            for collection in ("sites", "quotes", "invoices"):
                project[collection] = related[collection].get(project["id"], [])
        return projects

    # ---- Chantiers ----

    async def list_sites(self, org_id: str, project_id: str) -> List[Dict]:
        return await self.db.sites.find(
            {"project_id": project_id, "org_id": org_id}, NO_ID
        ).sort("created_at", 1).to_list(MAX_LIST)

    async def get_site(self, org_id: str, site_id: str) -> Optional[Dict]:
        return await self.db.sites.find_one({"id": site_id, "org_id": org_id}, NO_ID)

    async def insert_site(self, doc: Dict) -> Dict:
        await self.db.sites.insert_one(dict(doc))
        return doc

    async def update_site(self, org_id: str, site_id: str, fields: Dict[str, Any]) -> Optional[Dict]:
        return await self.db.sites.find_one_and_update(
            {"id": site_id, "org_id": org_id},
            {"$set": fields},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )

    async def delete_site(self, org_id: str, site_id: str) -> bool:
        result = await self.db.sites.delete_one({"id": site_id, "org_id": org_id})
        return result.deleted_count > 0

    async def update_sites_for_project(self, org_id: str, project_id: str, fields: Dict[str, Any]) -> List[Dict]:
        await self.db.sites.update_many(
            {"project_id": project_id, "org_id": org_id},
            {"$set": fields},
        )
        return await self.list_sites(org_id, project_id)

    # ---- Devis / factures ----

    async def list_quotes(self, org_id: str, project_id: str) -> List[Dict]:
        return await self.db.quotes.find(
            {"project_id": project_id, "org_id": org_id}, NO_ID
        ).sort("created_at", -1).to_list(MAX_LIST)

    async def get_quote(self, org_id: str, quote_id: str) -> Optional[Dict]:
        return await self.db.quotes.find_one({"id": quote_id, "org_id": org_id}, NO_ID)

    async def list_invoices(self, org_id: str, project_id: str) -> List[Dict]:
        return await self.db.invoices.find(
            {"project_id": project_id, "org_id": org_id}, NO_ID
        ).sort("created_at", -1).to_list(MAX_LIST)

    async def insert_invoice(self, doc: Dict) -> Dict:
        await self.db.invoices.insert_one(dict(doc))
        return doc

    # ---- Catalogue ----

    async def list_products(self, org_id: str, product_ids: List[str]) -> List[Dict]:
        return await self.db.products.find(
            {"id": {"$in": list(product_ids)}, "org_id": org_id}, NO_ID
        ).to_list(MAX_LIST)

    async def get_delegate(self, org_id: str, delegate_id: str) -> Optional[Dict]:
        return await self.db.delegates.find_one({"id": delegate_id, "org_id": org_id}, NO_ID)

    # ---- Settings ----

    async def get_settings(self, org_id: str) -> Optional[Dict]:
        return await self.db.settings.find_one({"org_id": org_id}, NO_ID)

    async def upsert_settings(self, org_id: str, fields: Dict[str, Any]) -> None:
        await self.db.settings.update_one(
            {"org_id": org_id},
            {"$set": {**fields, "org_id": org_id}},
            upsert=True,
        )

    # ---- Auth / audit ----

    async def get_session(self, token: str) -> Optional[Dict]:
        return await self.db.sessions.find_one({
            "token": token,
            "expires_at": {"$gt": now_iso()},
        }, NO_ID)

    async def has_membership(self, org_id: str, user_id: str) -> bool:
        return await self.db.memberships.count_documents({"org_id": org_id, "user_id": user_id}, limit=1) > 0

    async def insert_event(self, doc: Dict) -> None:
        await self.db.event_log.insert_one(dict(doc))


async def create_indexes(db):
    """Index utilisés par le repository"""
    for collection in ("projects", "sites", "quotes", "invoices", "products", "delegates"):
        await db[collection].create_index([("org_id", 1), ("id", 1)], unique=True)
    for collection in ("sites", "quotes", "invoices"):
        await db[collection].create_index([("org_id", 1), ("project_id", 1)])
    await db.settings.create_index("org_id", unique=True)
    await db.sessions.create_index("token")
    await db.memberships.create_index([("org_id", 1), ("user_id", 1)])
    await db.event_log.create_index("created_at")
