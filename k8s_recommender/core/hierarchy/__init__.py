from .hierarchizer import ResourceHierarchizer

__all__ = ["ResourceHierarchizer"]
