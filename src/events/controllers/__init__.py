from .events import EventController

__all__ = ["EventController"]
