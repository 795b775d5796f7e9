from .division_repository import DivisionRepository

__all__ = ['DivisionRepository']
