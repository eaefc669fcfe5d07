"""
Error taxonomy for the budget automation engine
"""


class BudgetAutomationError(Exception):
    """Base class for all budget automation errors"""

    error_code = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigInvalid(BudgetAutomationError):
    """Runtime configuration failed validation"""

    error_code = 'config_invalid'


class EntryNotFound(BudgetAutomationError):
    """Automation log entry does not exist"""

    error_code = 'not_found'


class EntryNotPending(BudgetAutomationError):
    """Automation log entry has already been resolved"""

    error_code = 'not_pending'


class BudgetUpdateFailed(BudgetAutomationError):
    """Budget writer did not confirm the new daily budget"""

    error_code = 'update_failed'


class LogPersistFailed(BudgetAutomationError):
    """Automation log entries could not be saved"""

    error_code = 'persist_failed'
