from dataclasses import dataclass

from identity_sync.api.http.middleware.user_sync import ReconciliationGate
from identity_sync.core.services.database.db_session import DbSessionService
from identity_sync.core.services.session.user_session import UserSessionCache
from identity_sync.core.services.user.reconciliation import UserReconciliationService
from identity_sync.core.storage.session_storage import SessionStorage
from identity_sync.entities.core.user import UserRepository


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
    session_storage: SessionStorage
    session_cache: UserSessionCache
    user_repository: UserRepository
    reconciliation_service: UserReconciliationService
    reconciliation_gate: ReconciliationGate
