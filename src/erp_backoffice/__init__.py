"""ERP back-office: identity, RBAC, menu trees and approval workflows."""

__version__ = "0.1.0"
