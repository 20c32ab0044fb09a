"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - Status Machine                                                ║
║                                                                              ║
║  1. Ordre canonique et garde de transition projet                            ║
║  2. Garde chantier (unified / legacy)                                        ║
║  3. Plancher chantiers sur les changements manuels                           ║
║  4. Sync chantiers -> projet: cliquet, idempotence                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import pytest

from errors import ValidationError, NotFoundError
from models import LegacyChantierStatus, ProjectStatus
from services.status_order import (
    PROJECT_STATUS_ORDER,
    LEGACY_PROJECT_STATUS_ORDER,
    LEGACY_CHANTIER_STATUS_ORDER,
    chantier_statuses,
    get_project_status_index,
    get_chantier_status_index,
    initial_chantier_status,
)
from services.status_machine import (
    ensure_project_status_transition,
    ensure_chantier_status_transition,
    derive_project_status_from_chantiers,
    ensure_project_status_not_behind_chantiers,
    sync_project_status_with_chantiers,
)
from tests.conftest import ORG_ID


class TestStatusOrder:

    def test_order_has_18_unique_statuses(self):
        assert len(PROJECT_STATUS_ORDER) == 18
        assert len(set(PROJECT_STATUS_ORDER)) == 18

    def test_order_follows_status_enums(self):
        assert PROJECT_STATUS_ORDER == [s.value for s in ProjectStatus]
        assert LEGACY_CHANTIER_STATUS_ORDER == [s.value for s in LegacyChantierStatus]
        assert chantier_statuses("legacy") == LEGACY_CHANTIER_STATUS_ORDER

    def test_legacy_order_is_ordered_subset(self):
        """Les 9 statuts courts gardent leur ordre relatif dans l'ordre complet"""
        indexes = [get_project_status_index(s) for s in LEGACY_PROJECT_STATUS_ORDER]
        assert -1 not in indexes
        assert indexes == sorted(indexes)

    def test_unknown_status_index(self):
        assert get_project_status_index("INCONNU") == -1
        assert get_project_status_index(None) == -1

    def test_index_is_case_insensitive(self):
        assert get_project_status_index(" livre ") == get_project_status_index("LIVRE")

    def test_legacy_chantier_rank_follows_project_mapping(self):
        assert get_chantier_status_index("SUSPENDU", "legacy") == get_chantier_status_index("EN_COURS", "legacy")
        assert get_chantier_status_index("TERMINE", "legacy") > get_chantier_status_index("EN_COURS", "legacy")

    def test_initial_chantier_status(self):
        assert initial_chantier_status("unified") == "CHANTIER_PLANIFIE"
        assert initial_chantier_status("legacy") == "PLANIFIE"


class TestProjectTransitionGuard:

    def test_forward_transition_allowed(self):
        ensure_project_status_transition("NOUVEAU", "DEVIS_ENVOYE")

    def test_same_status_allowed(self):
        ensure_project_status_transition("LIVRE", "LIVRE")

    def test_empty_current_allowed(self):
        ensure_project_status_transition(None, "ETUDE")
        ensure_project_status_transition("", "ETUDE")

    def test_backward_transition_refused(self):
        """LIVRE -> EN_COURS doit être refusé"""
        with pytest.raises(ValidationError) as exc_info:
            ensure_project_status_transition("LIVRE", "EN_COURS")
        assert exc_info.value.message == "Impossible de revenir à un statut projet précédent"
        assert exc_info.value.status_code == 400

    def test_unknown_target_refused(self):
        with pytest.raises(ValidationError) as exc_info:
            ensure_project_status_transition("NOUVEAU", "PERDU")
        assert "Statut projet inconnu" in exc_info.value.message

    def test_unknown_current_refused(self):
        with pytest.raises(ValidationError) as exc_info:
            ensure_project_status_transition("PERDU", "NOUVEAU")
        assert "Statut projet actuel inconnu" in exc_info.value.message

    def test_every_backward_pair_refused(self):
        for i, current in enumerate(PROJECT_STATUS_ORDER):
            for target in PROJECT_STATUS_ORDER[:i]:
                with pytest.raises(ValidationError):
                    ensure_project_status_transition(current, target)


class TestChantierTransitionGuard:

    def test_unified_forward(self):
        ensure_chantier_status_transition("CHANTIER_PLANIFIE", "CHANTIER_EN_COURS", "unified")

    def test_unified_backward_refused(self):
        with pytest.raises(ValidationError) as exc_info:
            ensure_chantier_status_transition("CHANTIER_TERMINE", "CHANTIER_EN_COURS", "unified")
        assert exc_info.value.message == "Impossible de revenir à un statut chantier précédent"

    def test_legacy_suspend_and_resume(self):
        """SUSPENDU et EN_COURS ont le même rang: aller-retour permis"""
        ensure_chantier_status_transition("EN_COURS", "SUSPENDU", "legacy")
        ensure_chantier_status_transition("SUSPENDU", "EN_COURS", "legacy")

    def test_legacy_backward_refused(self):
        with pytest.raises(ValidationError):
            ensure_chantier_status_transition("TERMINE", "EN_PREPARATION", "legacy")

    def test_legacy_rejects_unified_vocabulary(self):
        with pytest.raises(ValidationError) as exc_info:
            ensure_chantier_status_transition("PLANIFIE", "CHANTIER_EN_COURS", "legacy")
        assert "Statut chantier inconnu" in exc_info.value.message


class TestChantierFloor:

    def test_derive_takes_most_advanced(self):
        chantiers = [{"status": "CHANTIER_PLANIFIE"}, {"status": "CHANTIER_TERMINE"}, {"status": "A_PLANIFIER"}]
        assert derive_project_status_from_chantiers(chantiers, "unified") == "CHANTIER_TERMINE"

    def test_derive_legacy_maps_to_project_status(self):
        chantiers = [{"status": "PLANIFIE"}, {"status": "SUSPENDU"}]
        assert derive_project_status_from_chantiers(chantiers, "legacy") == "EN_COURS"

    def test_derive_without_chantiers(self):
        assert derive_project_status_from_chantiers([], "unified") is None
        assert derive_project_status_from_chantiers([{"status": "???"}], "unified") is None

    def test_manual_status_behind_chantier_refused(self):
        """Projet forcé à ETUDE alors qu'un chantier est en cours -> refus"""
        with pytest.raises(ValidationError):
            ensure_project_status_not_behind_chantiers("ETUDE", [{"status": "CHANTIER_EN_COURS"}], "unified")

    def test_manual_status_at_or_after_floor_allowed(self):
        chantiers = [{"status": "CHANTIER_EN_COURS"}]
        ensure_project_status_not_behind_chantiers("CHANTIER_EN_COURS", chantiers, "unified")
        ensure_project_status_not_behind_chantiers("LIVRE", chantiers, "unified")


@pytest.mark.asyncio
class TestSyncProjectStatus:

    async def test_advances_project_to_chantier_status(self, repo):
        project = repo.add_project(status="A_PLANIFIER")
        repo.add_site(project_id=project["id"], status="CHANTIER_EN_COURS")

        synced = await sync_project_status_with_chantiers(repo, ORG_ID, project, "unified")

        assert synced["status"] == "CHANTIER_EN_COURS"
        assert repo.projects[project["id"]]["status"] == "CHANTIER_EN_COURS"

    async def test_never_moves_project_backward(self, repo):
        """Projet LIVRE + chantier en cours: le projet reste LIVRE"""
        project = repo.add_project(status="LIVRE")
        repo.add_site(project_id=project["id"], status="CHANTIER_EN_COURS")

        synced = await sync_project_status_with_chantiers(repo, ORG_ID, project, "unified")

        assert synced["status"] == "LIVRE"
        assert repo.call_counts.get("update_project", 0) == 0

    async def test_idempotent(self, repo):
        project = repo.add_project(status="ACCEPTE")
        repo.add_site(project_id=project["id"], status="CHANTIER_PLANIFIE")

        first = await sync_project_status_with_chantiers(repo, ORG_ID, project, "unified")
        second = await sync_project_status_with_chantiers(repo, ORG_ID, first, "unified")

        assert first["status"] == second["status"] == "CHANTIER_PLANIFIE"
        assert repo.call_counts["update_project"] == 1

    async def test_no_chantier_leaves_project_unchanged(self, repo):
        project = repo.add_project(status="ETUDE")
        synced = await sync_project_status_with_chantiers(repo, ORG_ID, project, "unified")
        assert synced == project

    async def test_legacy_model(self, repo):
        project = repo.add_project(status="ACCEPTE")
        repo.add_site(project_id=project["id"], status="TERMINE")

        synced = await sync_project_status_with_chantiers(repo, ORG_ID, project, "legacy")

        assert synced["status"] == "LIVRE"

    async def test_missing_project_on_update(self, repo):
        project = {"id": "absent", "org_id": ORG_ID, "status": "NOUVEAU"}
        repo.add_site(project_id="absent", status="CHANTIER_PLANIFIE")

        with pytest.raises(NotFoundError):
            await sync_project_status_with_chantiers(repo, ORG_ID, project, "unified")
