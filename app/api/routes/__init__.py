from . import compilation, lessons

__all__ = ["compilation", "lessons"]
