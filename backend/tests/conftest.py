"""
EcoProRenov - Fixtures de test

FakeRepository: même interface que ProjectRepository, en mémoire.
Les pannes se programment par méthode:
    repo.fail("update_project", RuntimeError("db down"), after=1)
-> le 2e appel (et seulement lui) lève l'erreur.
"""

import copy

import pytest

ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"
USER_ID = "user-1"
TOKEN = "token-valide"


class FakeRepository:

    def __init__(self):
        self.projects = {}
        self.sites = {}
        self.quotes = {}
        self.invoices = {}
        self.products = {}
        self.delegates = {}
        self.settings = {}
        self.sessions = {}
        self.memberships = set()
        self.events = []
        self.failures = {}
        self.call_counts = {}

    # ---- Pannes programmées ----

    def fail(self, method: str, error: Exception, after: int = 0, times: int = 1):
        self.failures[method] = {"after": after, "remaining": times, "error": error}

    def _hit(self, method: str):
        self.call_counts[method] = self.call_counts.get(method, 0) + 1
        rule = self.failures.get(method)
        if rule and self.call_counts[method] > rule["after"] and rule["remaining"] > 0:
            rule["remaining"] -= 1
            raise rule["error"]

    # ---- Données ----

    def add_project(self, **fields):
        project = {"id": f"project-{len(self.projects) + 1}", "org_id": ORG_ID, "status": "NOUVEAU", **fields}
        self.projects[project["id"]] = project
        return copy.deepcopy(project)

    def add_site(self, **fields):
        site = {"id": f"site-{len(self.sites) + 1}", "org_id": ORG_ID, **fields}
        self.sites[site["id"]] = site
        return copy.deepcopy(site)

    def add_quote(self, **fields):
        quote = {"id": f"quote-{len(self.quotes) + 1}", "org_id": ORG_ID, **fields}
        self.quotes[quote["id"]] = quote
        return copy.deepcopy(quote)

    def add_product(self, **fields):
        product = {"id": f"product-{len(self.products) + 1}", "org_id": ORG_ID, **fields}
        self.products[product["id"]] = product
        return copy.deepcopy(product)

    def add_delegate(self, **fields):
        delegate = {"id": f"delegate-{len(self.delegates) + 1}", "org_id": ORG_ID, **fields}
        self.delegates[delegate["id"]] = delegate
        return copy.deepcopy(delegate)

    @staticmethod
    def _find(collection, org_id, doc_id):
        doc = collection.get(doc_id)
        if doc and doc.get("org_id") == org_id:
            return doc
        return None

    @staticmethod
    def _by_project(collection, org_id, project_id):
        return [d for d in collection.values() if d.get("org_id") == org_id and d.get("project_id") == project_id]

    # ---- Projets ----

    async def get_project(self, org_id, project_id):
        self._hit("get_project")
        return copy.deepcopy(self._find(self.projects, org_id, project_id))

    async def update_project(self, org_id, project_id, fields):
        self._hit("update_project")
        project = self._find(self.projects, org_id, project_id)
        if not project:
            return None
        project.update(copy.deepcopy(fields))
        return copy.deepcopy(project)

    async def count_projects(self, org_id):
        self._hit("count_projects")
        return len([p for p in self.projects.values() if p.get("org_id") == org_id])

    async def fetch_projects_page(self, org_id, skip, limit):
        self._hit("fetch_projects_page")
        projects = [p for p in self.projects.values() if p.get("org_id") == org_id]
        page = []
        for project in projects[skip:skip + limit]:
            page.append({
                **copy.deepcopy(project),
                "sites": copy.deepcopy(self._by_project(self.sites, org_id, project["id"])),
                "quotes": copy.deepcopy(self._by_project(self.quotes, org_id, project["id"])),
                "invoices": copy.deepcopy(self._by_project(self.invoices, org_id, project["id"])),
            })
        return page

    # ---- Chantiers ----

    async def list_sites(self, org_id, project_id):
        self._hit("list_sites")
        return copy.deepcopy(self._by_project(self.sites, org_id, project_id))

    async def get_site(self, org_id, site_id):
        self._hit("get_site")
        return copy.deepcopy(self._find(self.sites, org_id, site_id))

    async def insert_site(self, doc):
        self._hit("insert_site")
        self.sites[doc["id"]] = copy.deepcopy(doc)
        return doc

    async def update_site(self, org_id, site_id, fields):
        self._hit("update_site")
        site = self._find(self.sites, org_id, site_id)
        if not site:
            return None
        site.update(copy.deepcopy(fields))
        return copy.deepcopy(site)

    async def delete_site(self, org_id, site_id):
        self._hit("delete_site")
        if not self._find(self.sites, org_id, site_id):
            return False
        del self.sites[site_id]
        return True

    async def update_sites_for_project(self, org_id, project_id, fields):
        self._hit("update_sites_for_project")
        for site in self._by_project(self.sites, org_id, project_id):
            site.update(copy.deepcopy(fields))
        return copy.deepcopy(self._by_project(self.sites, org_id, project_id))

    # ---- Devis / factures ----

    async def list_quotes(self, org_id, project_id):
        self._hit("list_quotes")
        quotes = self._by_project(self.quotes, org_id, project_id)
        return copy.deepcopy(sorted(quotes, key=lambda q: q.get("created_at") or "", reverse=True))

    async def get_quote(self, org_id, quote_id):
        self._hit("get_quote")
        return copy.deepcopy(self._find(self.quotes, org_id, quote_id))

    async def list_invoices(self, org_id, project_id):
        self._hit("list_invoices")
        return copy.deepcopy(self._by_project(self.invoices, org_id, project_id))

    async def insert_invoice(self, doc):
        self._hit("insert_invoice")
        self.invoices[doc["id"]] = copy.deepcopy(doc)
        return doc

    # ---- Catalogue ----

    async def list_products(self, org_id, product_ids):
        self._hit("list_products")
        return [copy.deepcopy(p) for p in self.products.values() if p["id"] in product_ids and p.get("org_id") == org_id]

    async def get_delegate(self, org_id, delegate_id):
        self._hit("get_delegate")
        return copy.deepcopy(self._find(self.delegates, org_id, delegate_id))

    # ---- Settings ----

    async def get_settings(self, org_id):
        self._hit("get_settings")
        return copy.deepcopy(self.settings.get(org_id))

    async def upsert_settings(self, org_id, fields):
        self._hit("upsert_settings")
        self.settings.setdefault(org_id, {"org_id": org_id}).update(copy.deepcopy(fields))

    # ---- Auth / audit ----

    async def get_session(self, token):
        self._hit("get_session")
        return copy.deepcopy(self.sessions.get(token))

    async def has_membership(self, org_id, user_id):
        self._hit("has_membership")
        return (org_id, user_id) in self.memberships

    async def insert_event(self, doc):
        self._hit("insert_event")
        self.events.append(copy.deepcopy(doc))

    def events_for(self, action):
        return [e for e in self.events if e["action"] == action]


@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def no_sleep():
    """Remplace asyncio.sleep et garde les délais demandés"""
    delays = []

    async def sleep(delay):
        delays.append(delay)

    sleep.delays = delays
    return sleep
