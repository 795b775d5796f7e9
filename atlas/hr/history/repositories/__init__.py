from .history_repository import EmployeeHistoryRepository

__all__ = ['EmployeeHistoryRepository']
