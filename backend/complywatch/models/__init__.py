"""
ComplyWatch Data Models Package

Pydantic models for data validation and serialization.
"""

from .message import *
from .classification import *
from .policy import *
