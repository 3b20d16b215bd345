from squad_planner.client.app import ClientApp
from squad_planner.client.optimistic import MutationError, OptimisticMutation, is_optimistic_id, optimistic_id
from squad_planner.client.query_cache import QueryCache

__all__ = [
    "ClientApp",
    "MutationError",
    "OptimisticMutation",
    "QueryCache",
    "is_optimistic_id",
    "optimistic_id",
]
