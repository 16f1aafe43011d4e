from .reporter import Reporter, directory_size, human_size

__all__ = ["Reporter", "directory_size", "human_size"]
