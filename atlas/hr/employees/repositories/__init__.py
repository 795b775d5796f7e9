from .employee_repository import EmployeeRepository

__all__ = ['EmployeeRepository']
