"""Validation package."""

from duty_accounts.validation.validator import AccountValidator

__all__ = ["AccountValidator"]
