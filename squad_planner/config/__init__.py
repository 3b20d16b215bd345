from squad_planner.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
