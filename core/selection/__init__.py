"""Selection Module - single-winner finalization and admin reassignment."""
from core.selection.service import SelectionCoordinator, SelectionResult

__all__ = ['SelectionCoordinator', 'SelectionResult']
