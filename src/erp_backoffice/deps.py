"""Dependency injection singletons for the ERP back-office."""

from erp_backoffice.activity.service import ActivityService
from erp_backoffice.approvals.service import ApprovalDefinitionService, WorkflowService
from erp_backoffice.auth.mailer import EmailSender
from erp_backoffice.auth.service import SessionService, UserService
from erp_backoffice.auth.tokens import TokenService
from erp_backoffice.auth.totp import QRCodeWriter
from erp_backoffice.common.config import get_settings
from erp_backoffice.common.database import DatabaseManager
from erp_backoffice.masterdata.currency_sync import CurrencyCatalogClient, CurrencySyncService
from erp_backoffice.rbac.service import RbacService

_db: DatabaseManager | None = None
_tokens: TokenService | None = None
_sessions: SessionService | None = None
_users: UserService | None = None
_rbac: RbacService | None = None
_activity: ActivityService | None = None
_approvals: ApprovalDefinitionService | None = None
_workflow: WorkflowService | None = None
_currency_sync: CurrencySyncService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_token_service() -> TokenService:
    global _tokens
    if _tokens is None:
        _tokens = TokenService(get_settings())
    return _tokens


def get_session_service() -> SessionService:
    global _sessions
    if _sessions is None:
        settings = get_settings()
        _sessions = SessionService(
            settings,
            get_token_service(),
            mailer=EmailSender.from_settings(settings),
            qr_writer=QRCodeWriter(settings.qr_dir),
        )
    return _sessions


def get_user_service() -> UserService:
    global _users
    if _users is None:
        _users = UserService()
    return _users


def get_rbac_service() -> RbacService:
    global _rbac
    if _rbac is None:
        _rbac = RbacService()
    return _rbac


def get_activity_service() -> ActivityService:
    global _activity
    if _activity is None:
        _activity = ActivityService()
    return _activity


def get_approval_service() -> ApprovalDefinitionService:
    global _approvals
    if _approvals is None:
        _approvals = ApprovalDefinitionService()
    return _approvals


def get_workflow_service() -> WorkflowService:
    global _workflow
    if _workflow is None:
        _workflow = WorkflowService(get_approval_service())
    return _workflow


def get_currency_sync_service() -> CurrencySyncService:
    global _currency_sync
    if _currency_sync is None:
        _currency_sync = CurrencySyncService(CurrencyCatalogClient.from_settings(get_settings()))
    return _currency_sync


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _tokens, _sessions, _users, _rbac, _activity, _approvals, _workflow
    global _currency_sync
    _db = None
    _tokens = None
    _sessions = None
    _users = None
    _rbac = None
    _activity = None
    _approvals = None
    _workflow = None
    _currency_sync = None
