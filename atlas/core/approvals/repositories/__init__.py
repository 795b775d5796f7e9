from .request_repo import RequestRepository
from .step_repo import StepRepository

__all__ = ['RequestRepository', 'StepRepository']
