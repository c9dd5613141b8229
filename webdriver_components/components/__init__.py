from .base import BaseComponent, locate
from .widgets import Button, Checkbox, DropDownList, Simple, TextInput

__all__ = ["BaseComponent", "Button", "Checkbox", "DropDownList", "Simple", "TextInput", "locate"]
