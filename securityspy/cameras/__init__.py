from .camera import Camera, Cameras, yes_no

__all__ = ["Camera", "Cameras", "yes_no"]
